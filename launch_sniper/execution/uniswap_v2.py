from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

from launch_sniper.execution.uniswap_v3 import checksum, contract_for, encode_call, function_abi, param

GET_AMOUNTS_OUT = "getAmountsOut(uint256,address[])"
SWAP_EXACT_ETH_FOR_TOKENS = "swapExactETHForTokens(uint256,address[],address,uint256)"
SWAP_EXACT_TOKENS_FOR_TOKENS = "swapExactTokensForTokens(uint256,uint256,address[],address,uint256)"

ROUTER_V2 = contract_for(
    function_abi(
        "getAmountsOut",
        [param("amountIn", "uint256"), param("path", "address[]")],
        [param("amounts", "uint256[]")],
        mutability="view",
    ),
    function_abi(
        "swapExactETHForTokens",
        [
            param("amountOutMin", "uint256"),
            param("path", "address[]"),
            param("to", "address"),
            param("deadline", "uint256"),
        ],
        [param("amounts", "uint256[]")],
        mutability="payable",
    ),
    function_abi(
        "swapExactTokensForTokens",
        [
            param("amountIn", "uint256"),
            param("amountOutMin", "uint256"),
            param("path", "address[]"),
            param("to", "address"),
            param("deadline", "uint256"),
        ],
        [param("amounts", "uint256[]")],
    ),
)


@dataclass
class V2SwapPlan:
    method: str
    router: str
    path: list[str]
    amount_in: int
    min_out: int
    recipient: str
    deadline: int
    value: int  # native value to send


def get_amounts_out_calldata(amount_in: int, path: list[str]) -> bytes:
    return encode_call(ROUTER_V2, "getAmountsOut", int(amount_in), [checksum(a) for a in path])


def decode_amounts_out(raw: bytes) -> Optional[int]:
    if len(raw) < 64:
        return None
    try:
        (amounts,) = abi_decode(["uint256[]"], raw)
    except (DecodingError, ValueError, OverflowError):
        return None
    return int(amounts[-1]) if amounts else None


def build_swap_exact_eth_for_tokens(plan: V2SwapPlan) -> dict:
    data = encode_call(
        ROUTER_V2,
        "swapExactETHForTokens",
        int(plan.min_out),
        [checksum(a) for a in plan.path],
        checksum(plan.recipient),
        int(plan.deadline),
    )
    return {"to": plan.router, "data": data, "value": plan.value}


def build_swap_exact_tokens_for_tokens(plan: V2SwapPlan) -> dict:
    data = encode_call(
        ROUTER_V2,
        "swapExactTokensForTokens",
        int(plan.amount_in),
        int(plan.min_out),
        [checksum(a) for a in plan.path],
        checksum(plan.recipient),
        int(plan.deadline),
    )
    return {"to": plan.router, "data": data, "value": 0}
