#!/usr/bin/env python3
"""
otp_cli.py — Command line front-end for the OTP engine (multi-user, SQLite).

Subcommands:
- init    : enroll a user, print otpauth URIs and scratch codes
- totp    : print the user's current TOTP code (--watch refreshes it)
- hotp    : print the user's HOTP code for a given counter
- uri     : print the user's otpauth URIs
- verify  : check a TOTP (or --hotp) code for a user
- scratch : consume one of the user's scratch codes

eg..:
    twofactor init --user alice --account alice@example --issuer MyService
    twofactor totp --user alice --watch
    twofactor hotp --user alice --counter 42
    twofactor verify --user alice --code 123456
"""

import argparse
import logging
import sys
import time

from twofactor_core.authenticator import Authenticator
from twofactor_core.codec import KeyRepresentation
from twofactor_core.config import (
    DEFAULT_DIGITS,
    DEFAULT_WINDOW_SIZE,
    CredentialConfig,
    HashAlgorithm,
    VerificationConfig,
)
from twofactor_core.errors import OTPError, UnknownIdentityError
from twofactor_core.otp_core import hotp, now_millis, remaining_millis
from twofactor_database.db_manager import SQLiteCredentialRepository
from twofactor_database.setup_database import DATABASE_FILE

logger = logging.getLogger("twofactor")


def _authenticator(args) -> Authenticator:
    config = VerificationConfig(
        time_step_millis=args.period * 1000,
        window_size=args.window,
        digits=args.digits,
        hash_algorithm=args.algorithm,
    )
    credential_config = CredentialConfig(key_representation=getattr(args, "representation", "BASE32"))
    return Authenticator(config, credential_config)


def _repository(args) -> SQLiteCredentialRepository:
    return SQLiteCredentialRepository(args.db)


# --- CLI command handlers ---
def cmd_help(args):
    print("No command specified. Use -h for help.")
    return 1


def cmd_init(args):
    auth = _authenticator(args)
    credential, totp_uri, hotp_uri = auth.enroll(
        _repository(args), args.user, args.account or args.user, args.issuer)

    print(f"[*] Credentials for user '{args.user}':")
    print("    Secret:", credential.key)
    print("    Verification code:", credential.verification_code)
    print("[*] otpauth URIs (import into authenticator apps):")
    print("    TOTP:", totp_uri)
    print("    HOTP:", hotp_uri)
    print("[*] Scratch codes (each works once):")
    for code in credential.scratch_codes.formatted():
        print("   ", code)
    return 0


def cmd_totp(args):
    auth = _authenticator(args)
    repo = _repository(args)
    if not args.watch:
        print(auth.get_current_code_of_user(repo, args.user))
        return 0

    step = auth.config.time_step_millis
    print(f"[user={args.user}] Press Ctrl+C to quit. Generating {auth.config.digits}-digit TOTP...\n")
    last_code = None
    try:
        while True:
            now = now_millis()
            code = auth.get_current_code_of_user(repo, args.user, clock_millis=now)
            remaining = remaining_millis(step, now) // 1000
            if code != last_code:
                print(f"TOTP: {code}  (valid ~{remaining:2d}s)")
                last_code = code
            else:
                print(f".. {remaining:2d}s left", end='\r', flush=True)
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nBye.")
    return 0


def cmd_hotp(args):
    auth = _authenticator(args)
    secret = _repository(args).load(args.user)
    code = hotp(secret, args.counter, auth.config.digits, auth.config.hash_algorithm)
    print(f"HOTP(counter={args.counter}): {code}")
    return 0


def cmd_uri(args):
    auth = _authenticator(args)
    secret = _repository(args).load(args.user)
    totp_uri, hotp_uri = auth.provisioning_uris(secret, args.account or args.user, args.issuer)
    print("TOTP URI:")
    print(totp_uri)
    print("\nHOTP URI:")
    print(hotp_uri)
    return 0


def cmd_verify(args):
    auth = _authenticator(args)
    repo = _repository(args)
    if args.hotp:
        ok = auth.authorize_hotp_user(repo, args.user, args.code)
    else:
        ok = auth.authorize_user(repo, args.user, args.code)
    print("VALID" if ok else "INVALID")
    return 0 if ok else 1


def cmd_scratch(args):
    ok = _authenticator(args).validate_scratch_code(_repository(args), args.user, args.code)
    print("VALID" if ok else "INVALID")
    return 0 if ok else 1


def _add_common(p: argparse.ArgumentParser, user: bool = True):
    p.add_argument("--db", default=DATABASE_FILE, help="SQLite database file")
    if user:
        p.add_argument("--user", required=True, help="Identity the credential belongs to")
    p.add_argument("--digits", type=int, default=DEFAULT_DIGITS, help="Number of OTP digits")
    p.add_argument("--period", type=int, default=30, help="TOTP time step (seconds)")
    p.add_argument("--window", type=int, default=DEFAULT_WINDOW_SIZE, help="Steps tolerated before/after")
    p.add_argument("--algorithm", default="SHA1", choices=[a.value for a in HashAlgorithm])
    p.add_argument("--verbose", action="store_true", help="Verbose output")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="TOTP/HOTP two-factor authenticator with scratch codes.")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_help, verbose=False)

    # init
    pi = sub.add_parser("init", help="Enroll a user; print otpauth URIs and scratch codes")
    _add_common(pi)
    pi.add_argument("--account", default=None, help="Account label for otpauth URI (default: user)")
    pi.add_argument("--issuer", default="otp-tool", help="Issuer label for otpauth URI")
    pi.add_argument("--representation", default="BASE32", choices=[r.value for r in KeyRepresentation])
    pi.set_defaults(func=cmd_init)

    # totp
    pt = sub.add_parser("totp", help="Show the user's current TOTP code")
    _add_common(pt)
    pt.add_argument("--watch", action="store_true", help="Refresh in real time")
    pt.set_defaults(func=cmd_totp)

    # hotp
    ph = sub.add_parser("hotp", help="Generate the user's HOTP code for a counter")
    _add_common(ph)
    ph.add_argument("--counter", type=int, required=True)
    ph.set_defaults(func=cmd_hotp)

    # uri
    pu = sub.add_parser("uri", help="Print otpauth URIs for the user")
    _add_common(pu)
    pu.add_argument("--account", default=None)
    pu.add_argument("--issuer", default="otp-tool")
    pu.set_defaults(func=cmd_uri)

    # verify
    pv = sub.add_parser("verify", help="Verify a TOTP/HOTP code for the user")
    _add_common(pv)
    pv.add_argument("--code", required=True)
    pv.add_argument("--hotp", action="store_true", help="Counter-based verification")
    pv.set_defaults(func=cmd_verify)

    # scratch
    ps = sub.add_parser("scratch", help="Consume a scratch code for the user")
    _add_common(ps)
    ps.add_argument("--code", required=True)
    ps.set_defaults(func=cmd_scratch)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except UnknownIdentityError:
        print(f"[!] User '{args.user}' not found. Run 'init' first.", file=sys.stderr)
        return 1
    except OTPError as e:
        print(f"[!] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
