"""
Multi-recipient encryption and decryption.
"""

import unittest

from pkio import (
    Container,
    DecryptionError,
    EncryptionError,
    EncryptionState,
    Entity,
    InvalidRecipients,
    NotEncryptedError,
    PrivateKeyMissing,
    RecipientSet,
    SelfOnly,
)
from pkio.container import ENCRYPTION_MODE
from pkio.recipients import Recipient, resolve_recipients


class EntitiesMixin:

    @classmethod
    def setUpClass(cls):
        cls.rsa = Entity(id="rsa-1", name="RSA One", key_type="rsa")
        cls.rsa.generate_keys()
        cls.ec = Entity(id="ec-1", name="EC One", key_type="ec")
        cls.ec.generate_keys()
        cls.ec2 = Entity(id="ec-2", name="EC Two", key_type="ec")
        cls.ec2.generate_keys()
        cls.outsider = Entity(id="outsider", key_type="ec")
        cls.outsider.generate_keys()


class TestSelfEncryption(EntitiesMixin, unittest.TestCase):

    def test_round_trip_all_key_types(self):
        for entity in (self.rsa, self.ec):
            with self.subTest(key_type=entity.key_type.value):
                container = entity.encrypt("top secret")
                self.assertEqual(container.recipients, [entity.id])
                self.assertEqual(container.source, entity.id)
                self.assertEqual(entity.decrypt(container), "top secret")

    def test_body_is_ciphertext(self):
        container = self.ec.encrypt("top secret")
        self.assertNotIn("top secret", container.dump())
        self.assertEqual(container.encryption_state, EncryptionState.ENCRYPTED)
        self.assertEqual(container.to_dict()["options"]["encryption-mode"], ENCRYPTION_MODE)

    def test_unicode_and_empty_content(self):
        for content in ("", "grüße ✓", "line\nbreak"):
            with self.subTest(content=content):
                self.assertEqual(self.rsa.decrypt(self.rsa.encrypt(content)), content)

    def test_round_trip_through_json(self):
        container = Container.load(self.ec.encrypt("wire").dump())
        self.assertEqual(self.ec.decrypt(container), "wire")

    def test_explicit_self_only(self):
        container = self.ec.encrypt("mine", RecipientSet.self_only())
        self.assertEqual(self.ec.decrypt(container), "mine")


class TestMultipleRecipients(EntitiesMixin, unittest.TestCase):

    def test_each_recipient_decrypts_independently(self):
        recipients = [self.rsa.public(), self.ec.public(), self.ec2.public()]
        container = self.ec.encrypt("for everyone", recipients)
        self.assertEqual(container.recipients, ["ec-1", "ec-2", "rsa-1"])
        for entity in (self.rsa, self.ec, self.ec2):
            with self.subTest(recipient=entity.id):
                self.assertEqual(entity.decrypt(container), "for everyone")

    def test_sender_not_included_unless_listed(self):
        container = self.ec.encrypt("for rsa", [self.rsa])
        with self.assertRaises(DecryptionError):
            self.ec.decrypt(container)

    def test_outsider_cannot_decrypt(self):
        container = self.ec.encrypt("private", [self.rsa, self.ec2])
        with self.assertRaises(DecryptionError) as ctx:
            self.outsider.decrypt(container)
        self.assertEqual(ctx.exception.step, "decrypt")

    def test_impostor_with_same_id_cannot_decrypt(self):
        container = self.ec.encrypt("private", [self.ec2])
        impostor = Entity(id="ec-2", key_type="ec")
        impostor.generate_keys()
        with self.assertRaises(DecryptionError):
            impostor.decrypt(container)

    def test_tampered_ciphertext(self):
        data = self.ec.encrypt("private").to_dict()
        body = data["body"]
        data["body"] = body[:-8] + ("A" * 8 if not body.endswith("A" * 8) else "B" * 8)
        with self.assertRaises(DecryptionError):
            self.ec.decrypt(Container.load(data))

    def test_recipient_set_carries_references_only(self):
        recipient_set = RecipientSet.explicit([self.rsa, self.ec])
        for member in recipient_set.members:
            self.assertIsInstance(member, Recipient)
            self.assertFalse(hasattr(member, "encryption"))
        self.assertEqual([m.id for m in recipient_set.members], ["ec-1", "rsa-1"])


class TestEncryptionPreconditions(EntitiesMixin, unittest.TestCase):

    def test_invalid_recipient_arguments(self):
        for bad in ("rsa-1", 42, {"rsa-1": "key"}, [], [42], [self.rsa, "x"]):
            with self.subTest(recipients=bad):
                with self.assertRaises(InvalidRecipients) as ctx:
                    self.ec.encrypt("content", bad)
                self.assertEqual(ctx.exception.step, "encrypt")

    def test_single_entity_is_not_a_set(self):
        with self.assertRaises(InvalidRecipients):
            self.ec.encrypt("content", self.rsa)

    def test_resolve_none_is_self(self):
        self.assertIsInstance(resolve_recipients(None), SelfOnly)

    def test_decrypt_plain_container(self):
        with self.assertRaises(NotEncryptedError):
            self.ec.decrypt(Container.new("plain"))

    def test_public_view_cannot_decrypt(self):
        container = self.ec.encrypt("private")
        with self.assertRaises(PrivateKeyMissing):
            self.ec.public().decrypt(container)

    def test_double_encryption_rejected(self):
        container = self.ec.encrypt("once")
        with self.assertRaises(EncryptionError):
            container.encrypt("twice", {self.ec.id: self.ec.encryption.public_key})

    def test_sealed_container_cannot_be_encrypted(self):
        container = self.ec.sign_string("signed first")
        with self.assertRaises(EncryptionError):
            container.encrypt("then encrypted", {self.ec.id: self.ec.encryption.public_key})

    def test_unusable_recipient_key(self):
        with self.assertRaises(EncryptionError):
            Container.new().encrypt("x", {"broken": "not a key"})

    def test_entity_without_keys_cannot_encrypt_to_self(self):
        with self.assertRaises(EncryptionError):
            Entity(id="blank").encrypt("x")


if __name__ == "__main__":
    unittest.main()
