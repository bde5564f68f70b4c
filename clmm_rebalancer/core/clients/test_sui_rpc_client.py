from __future__ import annotations

import json

import httpx
import pytest

from clmm_rebalancer.core.adapters.models import SubmittableTransaction
from clmm_rebalancer.core.clients.SuiRpcClient import (
    SuiRpcClient,
    bits_to_i32,
    split_type_arguments,
)
from clmm_rebalancer.core.constants.sui import NETWORK_MAINNET, position_struct_type
from clmm_rebalancer.core.errors import SuiRpcError

RPC_URL = "https://fullnode.example/"
OWNER = "0x5ea1"
POOL_ID = "0xb8d7d9e66a60c239e7a60110efcf8de6c705580ed924d0dde141f4a0e2c90105"
COIN_A = "0xdba34672e30cb065b1f93e3ab55318768fd6fef66c15942c9f7cb846e2f900e7::usdc::USDC"
COIN_B = "0x2::sui::SUI"


def _client(handler, *, signer=None) -> tuple[SuiRpcClient, list[dict]]:
    requests: list[dict] = []

    def _wrapped(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        result = handler(body)
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **result})

    http = httpx.AsyncClient(transport=httpx.MockTransport(_wrapped))
    client = SuiRpcClient(
        RPC_URL, address=OWNER, network=NETWORK_MAINNET, signer=signer, client=http
    )
    return client, requests


def test_bits_to_i32():
    assert bits_to_i32(1000) == 1000
    assert bits_to_i32(4294967196) == -100
    assert bits_to_i32("4294967295") == -1
    assert bits_to_i32(0) == 0


def test_split_type_arguments_handles_nested_generics():
    assert split_type_arguments(f"0x1eab::pool::Pool<{COIN_A}, {COIN_B}>") == [COIN_A, COIN_B]
    assert split_type_arguments("0x1::pool::Pool<0x2::lp::LP<0x3::a::A, 0x4::b::B>, 0x5::c::C>") == [
        "0x2::lp::LP<0x3::a::A, 0x4::b::B>",
        "0x5::c::C",
    ]
    assert split_type_arguments("0x1::pool::Pool") == []


@pytest.mark.asyncio
async def test_get_balance():
    client, requests = _client(lambda body: {"result": {"totalBalance": "123456"}})

    assert await client.get_balance(OWNER, COIN_B) == 123456
    assert requests[0]["method"] == "suix_getBalance"
    assert requests[0]["params"] == [OWNER, COIN_B]
    await client.close()


@pytest.mark.asyncio
async def test_get_pool_parses_negative_tick_and_coin_types():
    def handler(body):
        return {
            "result": {
                "data": {
                    "objectId": POOL_ID,
                    "content": {
                        "dataType": "moveObject",
                        "type": f"0x1eab::pool::Pool<{COIN_A}, {COIN_B}>",
                        "fields": {
                            "current_tick_index": {
                                "type": "0x1eab::i32::I32",
                                "fields": {"bits": 4294967196},
                            },
                            "tick_spacing": 60,
                            "current_sqrt_price": "18446744073709551616",
                        },
                    },
                }
            }
        }

    client, requests = _client(handler)
    pool = await client.get_pool(POOL_ID)

    assert requests[0]["method"] == "sui_getObject"
    assert pool.pool_address == POOL_ID
    assert pool.current_tick_index == -100
    assert pool.tick_spacing == 60
    assert pool.current_sqrt_price == 1 << 64
    assert pool.coin_type_a == COIN_A
    assert pool.coin_type_b == COIN_B


@pytest.mark.asyncio
async def test_get_pool_missing_object_raises():
    client, _ = _client(lambda body: {"result": {"error": {"code": "notExists"}}})

    with pytest.raises(SuiRpcError, match="not found"):
        await client.get_pool(POOL_ID)


def _position_item(object_id: str, lower_bits: int, upper_bits: int, liquidity: str) -> dict:
    return {
        "data": {
            "objectId": object_id,
            "content": {
                "fields": {
                    "pool": POOL_ID,
                    "tick_lower_index": {"fields": {"bits": lower_bits}},
                    "tick_upper_index": {"fields": {"bits": upper_bits}},
                    "liquidity": liquidity,
                    "coin_type_a": {"fields": {"name": COIN_A[2:]}},
                    "coin_type_b": {"fields": {"name": "0000000000000000000000000000000000000000000000000000000000000002::sui::SUI"}},
                }
            },
        }
    }


@pytest.mark.asyncio
async def test_get_positions_follows_pagination():
    pages = {
        None: {
            "data": [_position_item("0xp1", 4294967176, 4294967236, "5000000")],
            "nextCursor": "0xp1",
            "hasNextPage": True,
        },
        "0xp1": {
            "data": [_position_item("0xp2", 960, 1020, "0"), {"data": {"objectId": "0xbroken"}}],
            "nextCursor": None,
            "hasNextPage": False,
        },
    }
    client, requests = _client(lambda body: {"result": pages[body["params"][2]]})

    positions = await client.get_positions(OWNER)

    assert [p.position_id for p in positions] == ["0xp1", "0xp2"]
    assert positions[0].tick_lower == -120
    assert positions[0].tick_upper == -60
    assert positions[0].liquidity == "5000000"
    assert positions[0].coin_type_a == COIN_A
    assert positions[1].coin_type_b.startswith("0x0000")
    assert requests[0]["params"][1]["filter"] == {
        "StructType": position_struct_type(NETWORK_MAINNET)
    }
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_rpc_error_raises():
    client, _ = _client(
        lambda body: {"error": {"code": -32602, "message": "Invalid params"}}
    )

    with pytest.raises(SuiRpcError, match="Invalid params") as excinfo:
        await client.get_balance(OWNER, COIN_B)
    assert excinfo.value.code == -32602


@pytest.mark.asyncio
async def test_http_error_raises():
    client, _ = _client(lambda body: httpx.Response(503, text="unavailable"))

    with pytest.raises(httpx.HTTPStatusError):
        await client.get_balance(OWNER, COIN_B)


@pytest.mark.asyncio
async def test_sign_and_execute_parses_effects_and_balance_changes():
    signed: list[str] = []

    async def signer(tx_bytes: str) -> str:
        signed.append(tx_bytes)
        return "c2lnbmF0dXJl"

    def handler(body):
        return {
            "result": {
                "digest": "9XzDigest",
                "effects": {
                    "status": {"status": "success"},
                    "gasUsed": {
                        "computationCost": "1000000",
                        "storageCost": "2000000",
                        "storageRebate": "1500000",
                        "nonRefundableStorageFee": "15000",
                    },
                },
                "balanceChanges": [
                    {"owner": {"AddressOwner": OWNER}, "coinType": COIN_A, "amount": "250"},
                    {"owner": {"AddressOwner": OWNER}, "coinType": COIN_B, "amount": "-1500000"},
                    {"owner": {"Shared": {"initial_shared_version": 1}}, "coinType": COIN_A, "amount": "-250"},
                ],
            }
        }

    client, requests = _client(handler, signer=signer)
    result = await client.sign_and_execute(
        SubmittableTransaction(kind="remove_liquidity", tx_bytes="AAEC")
    )

    assert signed == ["AAEC"]
    assert requests[0]["method"] == "sui_executeTransactionBlock"
    assert requests[0]["params"][0] == "AAEC"
    assert requests[0]["params"][1] == ["c2lnbmF0dXJl"]
    assert requests[0]["params"][2] == {"showEffects": True, "showBalanceChanges": True}
    assert result.succeeded
    assert result.digest == "9XzDigest"
    assert result.gas_used.total == 1_500_000
    assert [(c.owner, c.amount) for c in result.balance_changes] == [
        (OWNER, 250),
        (OWNER, -1_500_000),
        (None, -250),
    ]


def test_parse_execution_result_failure():
    result = SuiRpcClient.parse_execution_result(
        {
            "digest": "0xdead",
            "effects": {"status": {"status": "failure", "error": "MoveAbort(...), 7)"}},
        }
    )
    assert result.status == "failure"
    assert result.error == "MoveAbort(...), 7)"
    assert result.gas_used is None
    assert result.balance_changes == []


@pytest.mark.asyncio
async def test_sign_and_execute_without_signer():
    client, requests = _client(lambda body: {"result": {}})

    with pytest.raises(ValueError, match="no signer"):
        await client.sign_and_execute(SubmittableTransaction(kind="swap", tx_bytes="AA"))
    assert requests == []
