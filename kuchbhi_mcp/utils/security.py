# kuchbhi_mcp/utils/security.py
import hashlib
import json
import logging
import secrets
from base64 import urlsafe_b64decode
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


def generate_fernet_key() -> str:
    """Generates a new Fernet key and returns it as a string."""
    return Fernet.generate_key().decode('utf-8')


def hash_secret(secret: str) -> str:
    """SHA-256 hex digest used to store client secrets."""
    return hashlib.sha256(secret.encode('utf-8')).hexdigest()


def secret_matches(secret: str, secret_hash: str) -> bool:
    return secrets.compare_digest(hash_secret(secret), secret_hash)


class FernetEncryptor:
    """Symmetric encryption of small strings and JSON payloads with Fernet."""

    def __init__(self, encryption_key: Optional[str], key_name: str = "encryption key"):
        """
        Args:
            encryption_key: Base64-encoded Fernet key string, or None
            key_name: Name of the setting the key came from, used in log messages
        """
        self.key_name = key_name
        self.fernet_instance: Optional[Fernet] = None
        self.key_valid = False

        if not encryption_key:
            logger.warning(f"{key_name} is not set. Encryption and decryption are disabled.")
            return

        try:
            key_bytes = encryption_key.encode('utf-8')
            # Fernet keys decode to exactly 32 bytes
            decoded_key_bytes = urlsafe_b64decode(key_bytes)
        except (ValueError, TypeError) as e:
            logger.error(f"{key_name} is not valid base64: {e}")
            return

        if len(decoded_key_bytes) != 32:
            logger.error(
                f"Invalid {key_name} length after base64 decoding. "
                f"Expected 32 bytes, got {len(decoded_key_bytes)}."
            )
            return

        self.fernet_instance = Fernet(key_bytes)
        self.key_valid = True
        logger.debug(f"FernetEncryptor ready for {key_name}.")

    def encrypt(self, data: str) -> Optional[str]:
        """Encrypt a string; None when no valid key is configured."""
        if not self.fernet_instance or not self.key_valid:
            logger.error(f"Cannot encrypt: {self.key_name} is missing or invalid.")
            return None
        return self.fernet_instance.encrypt(data.encode('utf-8')).decode('utf-8')

    def decrypt(self, encrypted_data: str) -> Optional[str]:
        """Decrypt a Fernet token; None on a missing key or a token that does not verify."""
        if not self.fernet_instance or not self.key_valid:
            logger.error(f"Cannot decrypt: {self.key_name} is missing or invalid.")
            return None
        try:
            return self.fernet_instance.decrypt(encrypted_data.encode('utf-8')).decode('utf-8')
        except InvalidToken:
            logger.warning(
                f"Decryption with {self.key_name} failed: invalid token. "
                "The key may have changed or the data is corrupted."
            )
            return None

    def encrypt_json(self, payload: Any) -> Optional[str]:
        return self.encrypt(json.dumps(payload, separators=(",", ":")))

    def decrypt_json(self, encrypted_data: str) -> Optional[Any]:
        plain = self.decrypt(encrypted_data)
        if plain is None:
            return None
        try:
            return json.loads(plain)
        except json.JSONDecodeError:
            logger.error(f"Decrypted {self.key_name} payload is not valid JSON.")
            return None
