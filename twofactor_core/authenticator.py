"""
authenticator.py — High level entry points tying the engine together.

``Authenticator`` only holds immutable configuration, a clock and a
credential generator, so one instance can serve every thread. Storage is
never looked up globally: each user-facing call receives the repository as
an argument.

Every user-facing verification answers with a plain bool. Why it failed
(unknown user, wrong code, replay, corrupt stored secret) is only logged.
"""

from typing import Callable, Optional, Tuple, Union
import logging

from twofactor_core import codec, credentials
from twofactor_core.codec import KeyRepresentation
from twofactor_core.config import MIN_SECRET_BYTES, CredentialConfig, VerificationConfig
from twofactor_core.credentials import Credential, CredentialGenerator, ScratchCodes
from twofactor_core.errors import (
    InvalidParameterError,
    OTPError,
    ReplayRejectedError,
    UnknownIdentityError,
)
from twofactor_core.otp_core import format_otpauth_uri, now_millis, totp
from twofactor_core.repository import CounterKind, CounterStateRepository, CredentialRepository
from twofactor_core.verification import Candidate, MatchResult, verify, verify_counter

logger = logging.getLogger(__name__)

Secret = Union[str, bytes]

# scratch-code compare-and-set attempts before giving up
_SCRATCH_CAS_ATTEMPTS = 3


def decode_secret(secret: Secret, representation: KeyRepresentation = KeyRepresentation.BASE32) -> bytes:
    """
    Turn a caller-supplied secret into raw bytes.

    ``bytes`` are taken as the raw secret, text is decoded with
    ``representation``. Secrets shorter than MIN_SECRET_BYTES are rejected.

    Raises:
        DecodingError: malformed encoded text
        InvalidParameterError: undersized secret
    """
    if isinstance(secret, (bytes, bytearray)):
        raw = bytes(secret)
    else:
        raw = codec.decode(secret, representation)
    if len(raw) < MIN_SECRET_BYTES:
        raise InvalidParameterError(f"secret must be at least {MIN_SECRET_BYTES} bytes")
    return raw


class Authenticator:
    def __init__(
        self,
        config: Optional[VerificationConfig] = None,
        credential_config: Optional[CredentialConfig] = None,
        clock: Optional[Callable[[], int]] = None,
        generator: Optional[CredentialGenerator] = None,
        replay_protection: bool = True,
    ):
        self.config = config or VerificationConfig()
        self.credential_config = credential_config or CredentialConfig()
        self._clock = clock or now_millis
        self._generator = generator or CredentialGenerator(self.credential_config, self.config)
        self.replay_protection = replay_protection
        # stand-ins so unknown identities cost the same HMAC work
        self._dummy_secret = bytes(self.credential_config.secret_size)
        self._dummy_scratch = ScratchCodes(
            tuple(range(self.credential_config.scratch_code_count)),
            self.credential_config.scratch_code_digits,
        )

    def _now(self, clock_millis: Optional[int]) -> int:
        return self._clock() if clock_millis is None else clock_millis

    def decode(self, secret: Secret, representation: Optional[KeyRepresentation] = None) -> bytes:
        return decode_secret(secret, representation or self.credential_config.key_representation)

    # --- Enrollment --------------------------------------------------------
    def create_credentials(self) -> Credential:
        return self._generator.generate()

    def create_credentials_for_user(self, repository: CredentialRepository, identity: str) -> Credential:
        """Generate a credential and store it for ``identity`` (replacing any previous one)."""
        credential = self._generator.generate()
        repository.save_credential(identity, credential)
        logger.info("Stored new credential for identity")
        return credential

    def enroll(
        self, repository: CredentialRepository, identity: str, account: str, issuer: str = ""
    ) -> Tuple[Credential, str, str]:
        """
        Enroll ``identity`` and return ``(credential, totp_uri, hotp_uri)``.

        The URIs are built before anything is stored: a bad account or
        issuer raises InvalidParameterError and leaves the existing
        credential of ``identity`` untouched.
        """
        credential = self._generator.generate()
        totp_uri, hotp_uri = self.provisioning_uris(credential.secret, account, issuer)
        repository.save_credential(identity, credential)
        logger.info("Stored new credential for identity")
        return credential, totp_uri, hotp_uri

    def provisioning_uris(self, secret: Secret, account: str, issuer: str = "") -> Tuple[str, str]:
        return format_otpauth_uri(self.decode(secret), account, issuer, self.config)

    # --- Codes -------------------------------------------------------------
    def get_current_code(
        self,
        secret: Secret,
        representation: Optional[KeyRepresentation] = None,
        clock_millis: Optional[int] = None,
    ) -> str:
        return totp(self.decode(secret, representation), self._now(clock_millis), self.config)

    def get_current_code_of_user(
        self, repository: CredentialRepository, identity: str, clock_millis: Optional[int] = None
    ) -> str:
        """Operator helper; raises UnknownIdentityError for unknown users."""
        return totp(decode_secret(repository.load(identity)), self._now(clock_millis), self.config)

    # --- Verification against a known secret ------------------------------
    def check(self, secret: Secret, code: Candidate, clock_millis: Optional[int] = None) -> MatchResult:
        """Window verification with the matched offset, for callers tracking drift."""
        return verify(self.decode(secret), code, self._now(clock_millis), self.config)

    def authorize(self, secret: Secret, code: Candidate, clock_millis: Optional[int] = None) -> bool:
        return self.check(secret, code, clock_millis).matched

    # --- Verification against a repository ---------------------------------
    def _accept_counter(self, repository: CounterStateRepository, identity: str, kind: CounterKind,
                        counter: int, previous: Optional[int]) -> None:
        if previous is not None and counter <= previous:
            raise ReplayRejectedError("counter not greater than last accepted")
        if not repository.save_counter_state(identity, kind, counter, previous):
            raise ReplayRejectedError("counter state changed concurrently")

    def authorize_user(
        self,
        repository: CredentialRepository,
        identity: str,
        code: Candidate,
        clock_millis: Optional[int] = None,
    ) -> bool:
        """
        TOTP verification for a stored user.

        With a counter-state repository (and replay protection on), a code is
        accepted at most once: its counter must be newer than the last
        accepted one.
        """
        clock_millis = self._now(clock_millis)
        track = self.replay_protection and isinstance(repository, CounterStateRepository)
        try:
            secret = decode_secret(repository.load(identity))
            previous = repository.load_counter_state(identity, CounterKind.TOTP) if track else None
        except UnknownIdentityError:
            verify(self._dummy_secret, code, clock_millis, self.config)
            logger.info("TOTP verification failed: unknown identity")
            return False
        except OTPError as e:
            logger.warning("TOTP verification failed: stored secret unusable (%s)", type(e).__name__)
            return False

        result = verify(secret, code, clock_millis, self.config)
        if not result:
            logger.info("TOTP verification failed: code mismatch")
            return False
        if track:
            try:
                self._accept_counter(repository, identity, CounterKind.TOTP, result.counter, previous)
            except ReplayRejectedError as e:
                logger.warning("TOTP verification failed: %s", e)
                return False
        if result.counter_offset:
            logger.debug("TOTP accepted with clock drift of %d steps", result.counter_offset)
        return True

    def authorize_hotp_user(
        self,
        repository: CredentialRepository,
        identity: str,
        code: Candidate,
        look_ahead: Optional[int] = None,
    ) -> bool:
        """
        HOTP (event counter) verification for a stored user.

        Searches the counters after the last accepted one, up to
        ``look_ahead`` (default: window_size) steps ahead, and persists the
        matched counter with compare-and-set so a code is never accepted twice.

        Raises:
            InvalidParameterError: the repository does not track counter state
        """
        if not isinstance(repository, CounterStateRepository):
            raise InvalidParameterError("HOTP verification requires a counter-state repository")
        look_ahead = self.config.window_size if look_ahead is None else look_ahead
        try:
            secret = decode_secret(repository.load(identity))
            previous = repository.load_counter_state(identity, CounterKind.HOTP)
        except UnknownIdentityError:
            verify_counter(self._dummy_secret, code, None, look_ahead, self.config)
            logger.info("HOTP verification failed: unknown identity")
            return False
        except OTPError as e:
            logger.warning("HOTP verification failed: stored secret unusable (%s)", type(e).__name__)
            return False

        result = verify_counter(secret, code, previous, look_ahead, self.config)
        if not result:
            logger.info("HOTP verification failed: code mismatch")
            return False
        try:
            self._accept_counter(repository, identity, CounterKind.HOTP, result.counter, previous)
        except ReplayRejectedError as e:
            logger.warning("HOTP verification failed: %s", e)
            return False
        if result.counter_offset:
            logger.debug("HOTP resynchronised %d counters ahead", result.counter_offset)
        return True

    def validate_scratch_code(self, repository: CredentialRepository, identity: str, code) -> bool:
        """Consume a scratch code of ``identity``; a consumed code never validates again."""
        for _ in range(_SCRATCH_CAS_ATTEMPTS):
            try:
                current = repository.load_scratch_codes(identity)
            except UnknownIdentityError:
                credentials.validate_scratch_code(self._dummy_scratch, code)
                logger.info("Scratch code rejected: unknown identity")
                return False

            result = credentials.validate_scratch_code(current, code)
            if not result:
                logger.info("Scratch code rejected: no match")
                return False
            if repository.replace_scratch_codes(identity, current, result.remaining):
                logger.info("Scratch code consumed, %d remaining", len(result.remaining))
                return True
            # another consumption won the race; reload and try again

        logger.warning("Scratch code rejected: concurrent updates")
        return False
