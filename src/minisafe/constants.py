from eth_utils.abi import function_signature_to_4byte_selector
from hexbytes import HexBytes

DEPLOY_SAFE_VERSION = "1.4.1"

# Safe v1.4.1 canonical addresses
DEFAULT_FALLBACK_ADDRESS = "0xfd0732Dc9E303f09fCEf3a7388Ad10A83459Ec99"
DEFAULT_PROXYFACTORY_ADDRESS = "0x4e1DCf7AD4e460CfD30791CCC4F9c8a4f820ec67"
DEFAULT_SAFEL2_SINGLETON_ADDRESS = "0x29fcB43b46531BcA003ddC8FCB67FFE91900C762"
DEFAULT_SAFE_SINGLETON_ADDRESS = "0x41675C099F32341bf84BFc5382aF534df5C7461a"
DEFAULT_MULTISEND_ADDRESS = "0x38869bf66a61cF6bDB996A6aE40D5853Fd43B526"
DEFAULT_MULTISEND_CALL_ONLY_ADDRESS = "0x9641d764fc13c8B624c04430C7356C1C7C8102e2"
DEFAULT_SIMULATE_TX_ACCESSOR_ADDRESS = "0x3d4BA2E0884aa488718476ca2FB8Efc291A46199"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
# Head marker of the owners and modules linked lists.
SENTINEL_ADDRESS = "0x0000000000000000000000000000000000000001"

# r(32) + s(32) + v(1)
ECDSA_SIGNATURE_LENGTH = 65

# keccak256("EIP712Domain(uint256 chainId,address verifyingContract)")
DOMAIN_SEPARATOR_TYPEHASH = HexBytes(
    "0x47e79534a245952e8b16893a336b85a3d9ea9fa8c573f3d803afb92a79469218"
)

# ERC-1271 magic values
ERC1271_MAGIC_VALUE = HexBytes("0x1626ba7e")  # isValidSignature(bytes32,bytes)
ERC1271_LEGACY_MAGIC_VALUE = HexBytes("0x20c13b0b")  # isValidSignature(bytes,bytes)


def selector(signature: str) -> HexBytes:
    return HexBytes(function_signature_to_4byte_selector(signature))


# Safe v1.4.1 setup() function
# setup(address[],uint256,address,bytes,address,address,uint256,address)
SAFE_SETUP_FUNC_SELECTOR = "0xb63e800d"
SAFE_SETUP_FUNC_TYPES = (
    "address[]",
    "uint256",
    "address",
    "bytes",
    "address",
    "address",
    "uint256",
    "address",
)

SET_GUARD_SELECTOR = "0xe19a9dd9"
ENABLE_MODULE_SELECTOR = "0x610b5925"
DISABLE_MODULE_SELECTOR = "0xe009cfde"
MULTISEND_SELECTOR = "0x8d80ff0a"
SET_FALLBACK_HANDLER_SELECTOR = selector("setFallbackHandler(address)")
ADD_OWNER_SELECTOR = selector("addOwnerWithThreshold(address,uint256)")
REMOVE_OWNER_SELECTOR = selector("removeOwner(address,address,uint256)")
SWAP_OWNER_SELECTOR = selector("swapOwner(address,address,address)")
CHANGE_THRESHOLD_SELECTOR = selector("changeThreshold(uint256)")

EXEC_TRANSACTION_SIGNATURE = (
    "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,"
    "address,address,bytes)"
)
EXEC_TRANSACTION_TYPES = (
    "address",
    "uint256",
    "bytes",
    "uint8",
    "uint256",
    "uint256",
    "uint256",
    "address",
    "address",
    "bytes",
)
CREATE_PROXY_WITH_NONCE_SIGNATURE = "createProxyWithNonce(address,bytes,uint256)"
CHECK_N_SIGNATURES_SIGNATURE = "checkNSignatures(bytes32,bytes,bytes,uint256)"
