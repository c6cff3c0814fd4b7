"""
Protocol parameters shared by every transaction kind.
"""

ADDRESS_LEN = 20
PUB_KEY_HASH_LEN = 20
TX_HASH_LEN = 32
ZERO_ADDRESS = b'\x00' * ADDRESS_LEN

# Field widths in the canonical byte encoding
TOKEN_BIT_WIDTH = 16
NONCE_BIT_WIDTH = 32
BALANCE_BIT_WIDTH = 128

MAX_TOKEN_ID = (1 << TOKEN_BIT_WIDTH) - 1
MAX_NONCE = (1 << NONCE_BIT_WIDTH) - 1
MAX_BALANCE = (1 << BALANCE_BIT_WIDTH) - 1

# Float packing (value = mantissa * 10^exponent)
AMOUNT_EXPONENT_BIT_WIDTH = 5
AMOUNT_MANTISSA_BIT_WIDTH = 35
FEE_EXPONENT_BIT_WIDTH = 5
FEE_MANTISSA_BIT_WIDTH = 11

# Operation opcodes (first byte of the canonical encoding)
WITHDRAW_OPCODE = 0x03
CLOSE_OPCODE = 0x04
TRANSFER_OPCODE = 0x05
CHANGE_PUBKEY_OPCODE = 0x07

# Chunks reserved in a batch per operation kind
TRANSFER_CHUNKS = 2
WITHDRAW_CHUNKS = 6
CLOSE_CHUNKS = 1
CHANGE_PUBKEY_CHUNKS = 6
