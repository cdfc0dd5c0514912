from __future__ import annotations

from eth_abi import encode as abi_encode

from launch_sniper.chains.signatures import ERC20_TRANSFER, UNISWAP_V2_PAIR_CREATED, UNISWAP_V3_POOL_CREATED
from launch_sniper.errors import TransientFetchError
from launch_sniper.models import ZERO_ADDRESS, LogEntry

WETH = "0x4200000000000000000000000000000000000006"
TKN = "0x1111111111111111111111111111111111111111"
OTHER = "0x2222222222222222222222222222222222222222"
POOL = "0x3333333333333333333333333333333333333333"
DEAD = "0x000000000000000000000000000000000000dead"
ME = "0x9999999999999999999999999999999999999999"
QUOTER = "0x3d4e44eb1374240ce5f1b871ab261cd16335b76a"
TX_A = "0x" + "ab" * 32
TX_B = "0x" + "cd" * 32


def addr_word(addr: str) -> bytes:
    return bytes(12) + bytes.fromhex(addr[2:])


def uint_word(v: int) -> bytes:
    return int(v).to_bytes(32, "big")


def v3_pool_log(token0, token1, fee, pool, block=100, tx=TX_A, index=0) -> LogEntry:
    return LogEntry(
        emitter="0x33128a8fc17869897dce68ed026d694621f6fdfd",
        topics=(UNISWAP_V3_POOL_CREATED.topic0, addr_word(token0), addr_word(token1), uint_word(fee)),
        data=uint_word(200) + addr_word(pool),
        block_number=block,
        transaction_hash=tx,
        log_index=index,
    )


def v2_pair_log(token0, token1, pair, block=100, tx=TX_A, index=0) -> LogEntry:
    return LogEntry(
        emitter="0x8909dc15e40173ff4699343b6eb8132c65e18ec6",
        topics=(UNISWAP_V2_PAIR_CREATED.topic0, addr_word(token0), addr_word(token1)),
        data=addr_word(pair) + uint_word(1),
        block_number=block,
        transaction_hash=tx,
        log_index=index,
    )


def transfer_log(token, sender, recipient, amount, block=100, tx=TX_A, index=1) -> LogEntry:
    return LogEntry(
        emitter=token,
        topics=(ERC20_TRANSFER.topic0, addr_word(sender), addr_word(recipient)),
        data=uint_word(amount),
        block_number=block,
        transaction_hash=tx,
        log_index=index,
    )


def mint_log(token, amount=1_000_000, recipient=DEAD, **kw) -> LogEntry:
    return transfer_log(token, ZERO_ADDRESS, recipient, amount, **kw)


def to_rpc(log: LogEntry) -> dict:
    return {
        "address": log.emitter,
        "topics": ["0x" + t.hex() for t in log.topics],
        "data": "0x" + log.data.hex(),
        "blockNumber": hex(log.block_number),
        "transactionHash": log.transaction_hash,
        "logIndex": hex(log.log_index),
    }


def receipt(logs, status=1, block=100) -> dict:
    return {
        "status": status,
        "blockNumber": block,
        "gasUsed": 150_000,
        "effectiveGasPrice": 2_000_000_000,
        "logs": [to_rpc(lg) for lg in logs],
    }


def abi_string(s: str) -> bytes:
    return abi_encode(["string"], [s])


def quoter_v2_result(amount_out: int) -> bytes:
    return abi_encode(["uint256", "uint160", "uint32", "uint256"], [amount_out, 0, 1, 80_000])


class FakeChainClient:
    """In-memory node. ``fail`` maps a method name to how many calls should fail."""

    def __init__(self, height=100):
        self.height = height
        self.logs: list[LogEntry] = []
        self.receipts: dict[str, dict] = {}
        self.blocks: dict[int, dict] = {}
        self.contracts: dict[str, dict[bytes, bytes]] = {}
        self.fail: dict[str, int] = {}
        self.calls: list[tuple[str, bytes]] = []
        self.get_logs_calls: list[tuple] = []
        self.sent: list[bytes] = []
        self.nonce = 7
        self.gas = 1_000_000_000

    def _maybe_fail(self, method: str):
        if self.fail.get(method, 0) > 0:
            self.fail[method] -= 1
            raise TransientFetchError(method, "connection reset")

    def set_call(self, to: str, selector: bytes, result: bytes):
        self.contracts.setdefault(to.lower(), {})[bytes(selector)] = result

    def add_token(self, address: str, symbol: str, name: str = "", decimals: int = 18):
        from launch_sniper.detection.metadata import DECIMALS, NAME, SYMBOL, TOTAL_SUPPLY

        self.set_call(address, SYMBOL, abi_string(symbol))
        self.set_call(address, NAME, abi_string(name or symbol))
        self.set_call(address, DECIMALS, uint_word(decimals))
        self.set_call(address, TOTAL_SUPPLY, uint_word(10**24))

    async def block_number(self) -> int:
        self._maybe_fail("eth_blockNumber")
        return self.height

    async def get_logs(self, from_block, to_block, topics, address=None):
        self._maybe_fail("eth_getLogs")
        self.get_logs_calls.append((from_block, to_block, tuple(topics), address))
        topic0 = bytes.fromhex(topics[0][2:]) if topics and topics[0] else None
        return [
            lg
            for lg in self.logs
            if from_block <= lg.block_number <= to_block
            and (topic0 is None or lg.topics[:1] == (topic0,))
            and (address is None or lg.emitter == address.lower())
        ]

    async def get_block(self, number, full_transactions=False):
        self._maybe_fail("eth_getBlockByNumber")
        return self.blocks.get(number, {"number": number, "transactions": []})

    async def get_transaction(self, tx_hash):
        return None

    async def get_transaction_receipt(self, tx_hash):
        self._maybe_fail("eth_getTransactionReceipt")
        return self.receipts.get(tx_hash)

    async def call(self, to, data):
        self._maybe_fail("eth_call")
        self.calls.append((to.lower(), bytes(data)))
        return self.contracts.get(to.lower(), {}).get(bytes(data[:4]), b"")

    async def get_transaction_count(self, address):
        return self.nonce

    async def gas_price(self):
        return self.gas

    async def send_raw_transaction(self, raw):
        self._maybe_fail("eth_sendRawTransaction")
        self.sent.append(raw)
        return "0x" + "ee" * 32


class FakeSigner:
    def __init__(self, address=ME):
        self.address = address
        self.signed: list[dict] = []

    def sign_transaction(self, tx):
        self.signed.append(tx)
        return b"\x02signed"
