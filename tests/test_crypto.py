"""Tests for one-way field hashing."""

from nvisy_odm.crypto import hash_value, is_hashed, verify_value


class TestHashing:
    """Test bcrypt hashing of encrypted fields."""

    def test_hash_and_verify(self):
        hashed = hash_value("hunter2", rounds=4)

        assert is_hashed(hashed)
        assert verify_value("hunter2", hashed)
        assert not verify_value("hunter3", hashed)

    def test_existing_hash_is_not_rehashed(self):
        hashed = hash_value("hunter2", rounds=4)

        assert hash_value(hashed, rounds=4) == hashed

    def test_non_strings_hash_their_string_form(self):
        hashed = hash_value(1234, rounds=4)

        assert verify_value("1234", hashed)

    def test_verify_rejects_non_hashes(self):
        assert not verify_value("x", "x")
        assert not is_hashed(None)
