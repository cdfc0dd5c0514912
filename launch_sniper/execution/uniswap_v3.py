from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from eth_utils import to_bytes
from web3 import Web3

QUOTE_V1 = "quoteExactInputSingle(address,address,uint24,uint256,uint160)"
QUOTE_V2 = "quoteExactInputSingle((address,address,uint256,uint24,uint160))"
EXACT_INPUT_SINGLE_V1 = "exactInputSingle((address,address,uint24,address,uint256,uint256,uint256,uint160))"
EXACT_INPUT_SINGLE_02 = "exactInputSingle((address,address,uint24,address,uint256,uint256,uint160))"
MULTICALL_DEADLINE = "multicall(uint256,bytes[])"

# Offline instance: contract objects below only encode calldata
_w3 = Web3()


def param(name: str, typ: str, components: Optional[list[dict]] = None) -> dict:
    p = {"name": name, "type": typ}
    if components is not None:
        p["components"] = components
    return p


def function_abi(name: str, inputs: list[dict], outputs: Optional[list[dict]] = None, mutability="nonpayable") -> dict:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs or [],
        "stateMutability": mutability,
    }


def contract_for(*fragments: dict):
    return _w3.eth.contract(abi=list(fragments))


def encode_call(contract, fn_name: str, *args) -> bytes:
    return to_bytes(hexstr=contract.encode_abi(fn_name, args=list(args)))


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


QUOTER_V1 = contract_for(
    function_abi(
        "quoteExactInputSingle",
        [
            param("tokenIn", "address"),
            param("tokenOut", "address"),
            param("fee", "uint24"),
            param("amountIn", "uint256"),
            param("sqrtPriceLimitX96", "uint160"),
        ],
        [param("amountOut", "uint256")],
    )
)

QUOTER_V2 = contract_for(
    function_abi(
        "quoteExactInputSingle",
        [
            param(
                "params",
                "tuple",
                [
                    param("tokenIn", "address"),
                    param("tokenOut", "address"),
                    param("amountIn", "uint256"),
                    param("fee", "uint24"),
                    param("sqrtPriceLimitX96", "uint160"),
                ],
            )
        ],
        [
            param("amountOut", "uint256"),
            param("sqrtPriceX96After", "uint160"),
            param("initializedTicksCrossed", "uint32"),
            param("gasEstimate", "uint256"),
        ],
    )
)

SWAP_ROUTER_V1 = contract_for(
    function_abi(
        "exactInputSingle",
        [
            param(
                "params",
                "tuple",
                [
                    param("tokenIn", "address"),
                    param("tokenOut", "address"),
                    param("fee", "uint24"),
                    param("recipient", "address"),
                    param("deadline", "uint256"),
                    param("amountIn", "uint256"),
                    param("amountOutMinimum", "uint256"),
                    param("sqrtPriceLimitX96", "uint160"),
                ],
            )
        ],
        [param("amountOut", "uint256")],
        mutability="payable",
    )
)

# SwapRouter02 has two multicall overloads; only the deadline one is declared
SWAP_ROUTER_02 = contract_for(
    function_abi(
        "exactInputSingle",
        [
            param(
                "params",
                "tuple",
                [
                    param("tokenIn", "address"),
                    param("tokenOut", "address"),
                    param("fee", "uint24"),
                    param("recipient", "address"),
                    param("amountIn", "uint256"),
                    param("amountOutMinimum", "uint256"),
                    param("sqrtPriceLimitX96", "uint160"),
                ],
            )
        ],
        [param("amountOut", "uint256")],
        mutability="payable",
    ),
    function_abi(
        "multicall",
        [param("deadline", "uint256"), param("data", "bytes[]")],
        [param("results", "bytes[]")],
        mutability="payable",
    ),
)


def compute_min_out(quoted_out: int, slippage_bps: int) -> int:
    # quoted * (1 - tolerance), rounded down: always strictly below a positive quote
    return quoted_out * (10_000 - slippage_bps) // 10_000


@dataclass
class V3SinglePlan:
    router: str
    token_in: str
    token_out: str
    fee: int
    amount_in: int
    min_out: int
    recipient: str
    deadline: int
    value: int


def quote_exact_input_single_calldata(
    token_in: str, token_out: str, fee: int, amount_in: int, quoter_version: str = "v2"
) -> bytes:
    if quoter_version == "v1":
        return encode_call(
            QUOTER_V1, "quoteExactInputSingle", checksum(token_in), checksum(token_out), int(fee), int(amount_in), 0
        )
    params = (checksum(token_in), checksum(token_out), int(amount_in), int(fee), 0)
    return encode_call(QUOTER_V2, "quoteExactInputSingle", params)


def decode_quoted_out(raw: bytes) -> Optional[int]:
    # V1 returns amountOut; V2 returns (amountOut, sqrtPriceX96After, ticksCrossed, gasEstimate)
    if len(raw) < 32:
        return None
    return int.from_bytes(raw[:32], "big")


def build_exact_input_single(p: V3SinglePlan, router_version: str = "router02") -> dict:
    if router_version == "v1":
        params = (
            checksum(p.token_in),
            checksum(p.token_out),
            int(p.fee),
            checksum(p.recipient),
            int(p.deadline),
            int(p.amount_in),
            int(p.min_out),
            0,  # sqrtPriceLimitX96
        )
        data = encode_call(SWAP_ROUTER_V1, "exactInputSingle", params)
    else:
        # SwapRouter02 dropped the deadline from the struct; enforce it through multicall
        params = (
            checksum(p.token_in),
            checksum(p.token_out),
            int(p.fee),
            checksum(p.recipient),
            int(p.amount_in),
            int(p.min_out),
            0,  # sqrtPriceLimitX96
        )
        inner = encode_call(SWAP_ROUTER_02, "exactInputSingle", params)
        data = encode_call(SWAP_ROUTER_02, "multicall", int(p.deadline), [inner])
    return {"to": p.router, "data": data, "value": int(p.value)}
