"""Decrypt a single WhatsApp media blob from a file or URL."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from wadecrypt.core.errors import MediaFetchError, VerificationError, WADecryptError  # noqa: E402
from wadecrypt.infra.logger import get_logger  # noqa: E402
from wadecrypt.utils.decrypt_job import DecryptJobConfig, DecryptJobError, run_decrypt_job  # noqa: E402


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Decrypt WhatsApp media with its mediaKey.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", help="Path to the encrypted .enc file")
    source.add_argument("--url", help="Media URL to download the encrypted blob from")
    parser.add_argument("--media-key", required=True, help="Base64 mediaKey")
    parser.add_argument("--file-sha256", required=True, help="Base64 SHA256 of the decrypted file")
    parser.add_argument("--file-enc-sha256", default=None, help="Base64 SHA256 of the encrypted file")
    parser.add_argument(
        "--media-type",
        default="audio",
        help="audio, image, video, document or sticker",
    )
    parser.add_argument("--out", required=True, help="Where to write the decrypted media")
    parser.add_argument("--strict", action="store_true", help="Fail on any MAC or digest mismatch")
    parser.add_argument(
        "--accept-iv-mac",
        action="store_true",
        help="Also accept a MAC tag computed over iv || ciphertext (WhatsApp client form)",
    )
    parser.add_argument("--timeout", type=float, default=30.0, help="Download timeout in seconds")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    get_logger("wadecrypt", logging.DEBUG if args.verbose else logging.INFO)
    config = DecryptJobConfig(
        media_key_b64=args.media_key,
        file_sha256_b64=args.file_sha256,
        file_enc_sha256_b64=args.file_enc_sha256,
        output_path=args.out,
        input_path=args.input,
        url=args.url,
        media_type=args.media_type,
        strict=args.strict,
        accept_iv_prefixed_mac=args.accept_iv_mac,
        timeout_s=args.timeout,
    )
    try:
        report = run_decrypt_job(config)
    except VerificationError as exc:
        print(f"[decrypt] verification failed: {exc}", file=sys.stderr)
        return 1
    except (DecryptJobError, MediaFetchError, WADecryptError, OSError) as exc:
        print(f"[decrypt] FAILED: {exc}", file=sys.stderr)
        return 2

    print(
        f"[decrypt] wrote {report.plaintext_size} bytes to {report.output_path} "
        f"(mac={'ok' if report.integrity_verified else 'mismatch'}, "
        f"sha256={'ok' if report.content_verified else 'mismatch'})"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
