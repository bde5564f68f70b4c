NETWORK_MAINNET = "mainnet"
NETWORK_TESTNET = "testnet"

SUI_COIN_TYPE = "0x2::sui::SUI"
SUI_COIN_TYPE_FULL = (
    "0x0000000000000000000000000000000000000000000000000000000000000002::sui::SUI"
)
GAS_COIN_TYPES = frozenset({SUI_COIN_TYPE, SUI_COIN_TYPE_FULL})

NETWORKS: dict[str, dict[str, str]] = {
    NETWORK_MAINNET: {
        "rpc_url": "https://sui-mainnet-endpoint.blockvision.org/",
        "clmm_package_id": "0x1eabed72c53feb3805120a081dc15963c204dc8d091542592abaf7a35689b2fb",
        "integrate_package_id": "0x996c4d9480708fb8b92aa7acf819fb0497b5ec8e65ba06601cae2fb6db3312c3",
        "global_config_id": "0xdaa46292632c3c4d8f31f23ea0f9b36a28ff3677e9684980e4438403a67a3d8f",
    },
    NETWORK_TESTNET: {
        "rpc_url": "https://testnet.artifact.systems/sui",
        "clmm_package_id": "0x0868b71c0cba55bf0faf6c40df8c179c67a4d0ba0e79965b68b3d72d7dfbf666",
        "integrate_package_id": "0x8627c5cdcd8b63bc3daa09a6ab7ed81a829a90cafce6003ae13372d611fbb1a9",
        "global_config_id": "0x6f4149091a5aea0e818e7243a13adcfb403842d670b9a2089de058512620687a",
    },
}


def position_struct_type(network: str) -> str:
    return f"{NETWORKS[network]['clmm_package_id']}::position::Position"
