"""
Credential generator with keepers-style memoization.

A credential is regenerated only when its trigger key, the epoch id plus
the policy fingerprint, changes. Within one epoch every call returns the
identical Credential object.
"""

import random
import secrets
import string
from typing import Any, Dict, List, Optional, Tuple

from ..constants import DEFAULT_SPECIAL_CHARACTERS, Limits
from ..exceptions import PolicyViolationError
from ..schemas.rotation_schemas import (
    Credential,
    CredentialPolicy,
    Epoch,
    LoginPolicy,
    PasswordPolicy,
)
from ..utils.logger import get_logger

TriggerKey = Tuple[int, str]


class KeeperCache:
    """Memoized values keyed by trigger key."""

    def __init__(self):
        self.entries: Dict[TriggerKey, Any] = {}

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, trigger_key: TriggerKey) -> Any:
        return self.entries.get(trigger_key)

    def put(self, trigger_key: TriggerKey, value: Any) -> None:
        self.entries[trigger_key] = value

    def discard_before(self, epoch_id: int) -> None:
        """Drop entries for epochs older than ``epoch_id``."""
        self.entries = {key: v for key, v in self.entries.items() if key[0] >= epoch_id}

    def clear(self) -> None:
        self.entries.clear()


def _strip(pool: str, excluded: str) -> str:
    return "".join(c for c in pool if c not in excluded)


def password_classes(policy: PasswordPolicy) -> List[Tuple[str, str, int]]:
    """
    Resolve the enabled character classes as (name, pool, minimum).

    Raises:
        PolicyViolationError: If the policy cannot produce a password
    """
    if policy.special and policy.override_special == "":
        raise PolicyViolationError(
            "Special characters are required but override_special is empty",
            field="override_special",
        )

    specials = (
        policy.override_special
        if policy.override_special is not None
        else DEFAULT_SPECIAL_CHARACTERS
    )
    candidates = [
        ("lower", policy.lower, string.ascii_lowercase, policy.min_lower),
        ("upper", policy.upper, string.ascii_uppercase, policy.min_upper),
        ("numeric", policy.numeric, string.digits, policy.min_numeric),
        ("special", policy.special, specials, policy.min_special),
    ]

    classes = []
    for name, enabled, pool, minimum in candidates:
        if not enabled:
            continue
        pool = _strip(pool, policy.exclude_characters)
        if not pool and minimum > 0:
            raise PolicyViolationError(
                f"Excluded characters leave no {name} characters to draw from",
                field="exclude_characters",
                character_class=name,
            )
        if pool:
            classes.append((name, pool, minimum))

    if not classes:
        raise PolicyViolationError("No character class is enabled", field="password")

    required = sum(minimum for _, _, minimum in classes)
    if policy.length < required:
        raise PolicyViolationError(
            f"Password length {policy.length} is below the {required} mandated characters",
            field="length",
            length=policy.length,
            required=required,
        )
    return classes


def validate_login_policy(policy: LoginPolicy) -> None:
    if policy.length < Limits.MIN_LOGIN_LENGTH:
        raise PolicyViolationError(
            f"Login length must be at least {Limits.MIN_LOGIN_LENGTH}",
            field="login.length",
            length=policy.length,
        )
    prefix = policy.forced_prefix
    if prefix is not None:
        if not prefix or not prefix[0].isascii() or not prefix[0].isalpha():
            raise PolicyViolationError(
                "Login prefix must start with a letter", field="login.forced_prefix"
            )
        if not (prefix.isascii() and prefix.isalnum()):
            raise PolicyViolationError(
                "Login prefix must be alphanumeric", field="login.forced_prefix"
            )


class CredentialGenerator:
    """
    Produce administrator credentials for a policy, one per epoch.

    ``rng`` defaults to ``secrets.SystemRandom``; tests may inject a seeded
    ``random.Random``.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or secrets.SystemRandom()
        self.cache = KeeperCache()
        self.logger = get_logger()

    @staticmethod
    def trigger_key(epoch_id: int, policy: CredentialPolicy) -> TriggerKey:
        return (epoch_id, policy.fingerprint())

    def generate(self, epoch: Epoch, policy: CredentialPolicy) -> Credential:
        """
        Return the credential for ``epoch``, generating it on a trigger change.

        Raises:
            PolicyViolationError: If the policy cannot be satisfied
        """
        key = self.trigger_key(epoch.id, policy)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        credential = Credential(
            login=self.generate_login(policy.login),
            password=self.generate_password(policy.password),
            epoch_id=epoch.id,
        )
        self.cache.put(key, credential)

        self.logger.info(
            "Generated credential",
            extra={"epoch_id": epoch.id, "login": credential.login},
        )
        return credential

    def seed(self, credential: Credential, policy: CredentialPolicy) -> None:
        """Pre-load the cache with a persisted credential so it is reused, not regenerated."""
        self.cache.put(self.trigger_key(credential.epoch_id, policy), credential)

    def generate_password(self, policy: PasswordPolicy) -> str:
        classes = password_classes(policy)

        chars = [self.rng.choice(pool) for _, pool, minimum in classes for _ in range(minimum)]
        union = "".join(pool for _, pool, _ in classes)
        chars.extend(self.rng.choice(union) for _ in range(policy.length - len(chars)))
        self.rng.shuffle(chars)
        return "".join(chars)

    def generate_login(self, policy: LoginPolicy) -> str:
        validate_login_policy(policy)

        letters = string.ascii_lowercase + (string.ascii_uppercase if policy.upper else "")
        alphabet = letters + (string.digits if policy.numeric else "")

        raw = "".join(self.rng.choice(alphabet) for _ in range(policy.length))
        if raw[0] in letters:
            return raw
        if policy.forced_prefix:
            return (policy.forced_prefix + raw)[: policy.length]
        return self.rng.choice(letters) + raw[1:]
