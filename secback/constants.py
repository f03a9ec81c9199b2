# AES block and key geometry
BLOCK_SIZE = 16
KEY_SIZE = 16
IV_SIZE = 16

# Key derivation: SHA-256 applied this many times in total
KDF_ROUNDS = 100

# SecureTar v2 envelope
SECURETAR_MAGIC = b"SecureTar"  # 9 bytes
SECURETAR_VERSION = 2
SECURETAR_RESERVED = b"\x00" * 6
SECURETAR_FILE_ID = SECURETAR_MAGIC + bytes([SECURETAR_VERSION]) + SECURETAR_RESERVED  # 16 bytes
SECURETAR_HEADER_SIZE = 48

# Outer container
MANIFEST_NAME = "backup.json"
MANIFEST_MAX_SIZE = 4 * 1024
PAYLOAD_MIN_SIZE = 1024

# Recognized manifest flags
FLAG_PROTECTED = "protected"
FLAG_COMPRESSED = "compressed"

DIR_MODE = 0o755
