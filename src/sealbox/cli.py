from __future__ import annotations

import argparse
import logging
import sys

from .containers.errors import ContainerError
from .containers.service import ContainerService, build_service
from .settings import settings


def cmd_create(svc: ContainerService, args: argparse.Namespace) -> int:
    svc.create(args.name)
    print(f"Created container {args.name}")
    return 0


def cmd_list(svc: ContainerService, args: argparse.Namespace) -> int:
    listing = svc.list()
    if args.json:
        print(listing.model_dump_json())
    else:
        for name in listing.containers:
            print(name)
    return 0


def cmd_sign(svc: ContainerService, args: argparse.Namespace) -> int:
    seq = svc.sign(args.name, args.user)
    print(f"Signed {args.name} as {args.user} (signature {seq})")
    return 0


def cmd_delete(svc: ContainerService, args: argparse.Namespace) -> int:
    removed = svc.delete(args.name, args.user)
    if removed:
        print(f"Removed signature(s) {', '.join(str(n) for n in removed)} from {args.name}")
    else:
        print(f"No signature by {args.user} in {args.name}")
    return 0


def cmd_verify(svc: ContainerService, args: argparse.Namespace) -> int:
    report = svc.verify(args.name)
    if not report.signatures:
        print(f"{args.name}: no signatures")
    for sig in report.signatures:
        line = f"signature{sig.sequence} ({sig.signer or 'unknown signer'}): {'OK' if sig.ok else 'FAIL'}"
        if sig.mismatched_files:
            line += f" changed: {', '.join(sig.mismatched_files)}"
        print(line)
    if not report.ok:
        print(f"FAIL: {args.name} did not verify", file=sys.stderr)
        return 2
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sealbox",
        description="Manage signed zip containers",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_create = sub.add_parser("create", help="Create a container from the source directory")
    p_create.add_argument("name")
    p_create.set_defaults(func=cmd_create)

    p_list = sub.add_parser("list", help="List containers")
    p_list.add_argument("--json", action="store_true", help="Print the same JSON as GET /read")
    p_list.set_defaults(func=cmd_list)

    p_sign = sub.add_parser("sign", help="Add a manifest and signature for a user")
    p_sign.add_argument("name")
    p_sign.add_argument("--user", required=True, help="Submitter identity bound into the signature")
    p_sign.set_defaults(func=cmd_sign)

    p_delete = sub.add_parser("delete", help="Remove a user's signature(s) from a container")
    p_delete.add_argument("name")
    p_delete.add_argument("--user", required=True)
    p_delete.set_defaults(func=cmd_delete)

    p_verify = sub.add_parser("verify", help="Check manifests and signatures against current contents")
    p_verify.add_argument("name")
    p_verify.set_defaults(func=cmd_verify)
    return p


def main(argv: list[str] | None = None, service: ContainerService | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level="DEBUG" if args.verbose else settings.log_level.upper())
    svc = service or build_service(settings)
    try:
        return args.func(svc, args)
    except ContainerError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
