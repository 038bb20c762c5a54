# chainsync

Building blocks for a custodial wallet back office. The package keeps track of
the businesses that use the wallet, builds EIP-1559 transactions for them,
broadcasts signed transactions, scans blocks, and tells each business what has
happened to its deposits, withdrawals and internal transfers.

It does not talk to a chain directly and does not store anything itself.
Chain access goes through an account service object, and storage goes
through a database object; you supply both.

## Modules

- `chainsync.records`: the shared vocabulary. Transaction statuses
  (`TxStatus`), transaction kinds (`TransactionType`, read with
  `parse_transaction_type`), address kinds (`AddressType`, read with
  `parse_address_type`) and `TokenType`. It also holds the stored records
  (`TxRecord`, `Balance`, `Business`, `AddressRecord`, `TokenRecord`) and the
  wire messages: `Transaction`, `NotifyRequest` (serialised with `to_json()`;
  an empty batch is sent as `"txn": null`), `NotifyResponse` (read with
  `NotifyResponse.from_json()`) and `Eip1559DynamicFeeTx`.
- `chainsync.channel_bank`: `ChannelBank` and `BlockHeaderBank`, thread-safe
  buffers that hand out what was pushed in ascending block-number order.
  `push()` waits while the buffer is full (a `buffer_size` of zero or less
  means unbounded); iterating waits for items and ends once `close()` has
  been called and the buffer is empty. Pushing after closing, or closing
  twice, raises `RuntimeError`. Items are `TransactionChannel` and
  `BlockHeader`.
- `chainsync.notify_client`: `NotifyClient` posts a `NotifyRequest` to
  `<base_url>/dapplink/notify` and returns the `success` flag of the reply.
  It raises `BlockchainHTTPError` when the reply status is 400 or more, and
  `ValueError` for an empty base URL or an unreadable reply.
- `chainsync.account_client`: `WalletChainAccountClient` wraps an account
  service stub. It fetches block headers, blocks and transactions, reads
  account numbers, and sends raw transactions; failures reported by the
  service raise `AccountServiceError`. `export_address_by_pub_key` returns
  `""` on failure, and `get_account` returns `(account number, sequence,
  balance)` or `(0, 0, 0)` on any failure.
- `chainsync.fees`: `parse_fast_fee` reads a
  `"<gas price>|<tip cap>|*<multiplier>"` fee string into a `FeeInfo`.
  `determine_token_type` and `gas_and_contract_info` choose the token type,
  the gas limit and the contract address for a transfer; the contract address
  `"0x00"` means the chain's native coin.
- `chainsync.business`: `BusinessMiddleWireServices` holds the operations
  business platforms call: `business_register`,
  `export_addresses_by_public_keys`, `set_token_address`,
  `build_unsign_transaction` and `build_signed_transaction`. Results come
  back as a `ServiceResponse` with a `ReturnCode`; missing request fields
  (`validate_request`) and malformed values raise `ValueError`.
- `chainsync.notifier`: `Notifier` gathers, for each registered business, the
  transactions it still needs to hear about and sends them. It marks them
  `NOTIFIED` before the call and `SUCCESS` or `WALLET_DONE` afterwards,
  retrying the status update with exponential back-off. Unsigned deposits
  keep their status.
- `chainsync.workers`: `Withdraw` and `Internal` broadcast each business's
  signed, unsent withdrawals and internal transfers, record each transaction
  hash and the `BROADCASTED` status, and pass the amounts sent to the
  balance store as locked balances.
- `chainsync.synchronizer`: `BaseSynchronizer` fetches blocks in batches of
  `header_buffer_size` on a background thread and advances `from_block` past
  what it received. `scan_block_transactions` looks up transactions by hash
  and pushes those touching a business's addresses into a `ChannelBank`.
  `classify_transaction` decides from the sender's and receiver's address
  kinds whether a transfer is a deposit, withdrawal, collection, hot-to-cold
  or cold-to-hot. `Deposit` resumes from the latest stored block, or from
  `starting_height`, or from the chain's latest block.

## Example

```python
from chainsync.fees import gas_and_contract_info, parse_fast_fee
from chainsync.records import TransactionType, parse_transaction_type

fee = parse_fast_fee("100|20|*3")
print(fee.multiplied_tip, fee.max_priority_fee)

gas_limit, contract = gas_and_contract_info("0x00")

assert parse_transaction_type("withdraw") is TransactionType.WITHDRAW
```

Malformed input raises `ValueError`: a fee string without three parts, an
unknown transaction kind, an unknown address kind.

## Background workers

`Notifier`, `Withdraw`, `Internal` and `Deposit` share a life cycle.
Construct one with its collaborators, an optional `shutdown` callable and an
interval in seconds, then call `start()` to run it on a background thread.
Call `Notifier.stop()`, or `close()` on the others, to end it; if the loop
ended with an error, stopping raises `RuntimeError` carrying it. The
`shutdown` callable is called with that error as soon as the loop fails.
`Notifier.notify_once()`, `Withdraw.process_once()` and
`Internal.process_once()` run a single round, which suits tests and
scheduled jobs.

## What the package does not do

- It has no database. Every service and worker expects a `db` object
  providing the stores and methods named in its docstring.
- It has no account service client transport. `WalletChainAccountClient`
  needs a stub object whose methods take keyword arguments and return
  replies with attribute access.
- It runs no network server. `BusinessMiddleConfig` only records a host
  name and port; serving `BusinessMiddleWireServices` is left to the caller.
- It has no command-line program.
- The synchroniser fetches blocks but does not itself turn them into
  stored deposit records.

## Requirements

Python 3.10 or later. The only third-party dependency is `requests`.