"""
One-Command Enrollment

Enrolls (or re-enrolls) a user from still images on disk, either in-process
through the core services or through a running API server.

Usage:
    # Local mode (loads the face model in this process)
    python scripts/run_enroll.py --user-id alice img1.jpg img2.jpg img3.jpg

    # API mode (requires the server: python -m api.app)
    python scripts/run_enroll.py --api --user-id alice storage/captures/alice/*.jpg

    # Replace an existing template
    python scripts/run_enroll.py --api --user-id alice --replace new1.jpg new2.jpg new3.jpg

Exit codes:
    0: enrolled, 1: rejected by the service, 2: connection or setup error
"""

import argparse
import base64
import json
import sys
import time
from pathlib import Path
from typing import List
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT))

DEFAULT_API_URL = "http://localhost:8000"


def print_banner(text: str, char: str = "="):
    line = char * 60
    print(f"\n{line}")
    print(text)
    print(line)


def encode_images(paths: List[Path]) -> List[str]:
    """Read image files as base64 strings for API submission."""
    frames_b64 = []
    for path in paths:
        with open(path, "rb") as f:
            frames_b64.append(base64.b64encode(f.read()).decode("ascii"))
    return frames_b64


def print_error(body: dict):
    print(f"\n  ERROR [{body.get('code', 'UNKNOWN')}]: {body.get('error', body)}")
    details = body.get("details") or {}
    for key, value in details.items():
        print(f"    {key}: {value}")


def run_api_enroll(api_url: str, user_id: str, paths: List[Path], replace: bool) -> int:
    """Send images to the API server for enrollment.

    Returns:
        0 for success, 1 for enrollment error, 2 for connection error.
    """
    print("  Encoding images...")
    payload = {"images": encode_images(paths)}
    url = f"{api_url}/face-auth/{user_id}/enroll"
    method = "PUT" if replace else "POST"
    print(f"  Sending {len(paths)} images to {method} {url} ...")

    req = Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method=method,
    )

    try:
        with urlopen(req, timeout=300) as resp:
            result = json.loads(resp.read().decode("utf-8"))
    except HTTPError as e:
        try:
            body = json.loads(e.read().decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            body = {"error": str(e)}
        print_error(body)
        return 1
    except URLError as e:
        print(f"\n  ERROR: Cannot reach API server at {api_url}")
        print(f"  Reason: {e.reason}")
        print("\n  Start the server first:")
        print("    python -m api.app")
        return 2

    print(f"\n  Template: {result['template_id']}")
    print(f"  Captures: {result['n_captures']}")
    print(f"  Enrolled: {result['enrolled_at']}")
    return 0


def run_local_enroll(user_id: str, paths: List[Path], replace: bool) -> int:
    """Enroll in-process through the core services.

    Returns:
        0 for success, 1 for enrollment error.
    """
    from core.config import get_face_extraction_config
    from core.enrollment_service import get_enrollment_service
    from core.errors import FaceAuthError
    from core.face_extractor import decode_image

    service = get_enrollment_service()
    max_pixels = get_face_extraction_config().get("max_image_pixels")

    try:
        service.check_request_shape(paths)
        images = [decode_image(path.read_bytes(), max_pixels=max_pixels) for path in paths]
        if replace:
            template = service.re_enroll(user_id, images)
        else:
            template = service.enroll(user_id, images)
    except FaceAuthError as e:
        print_error(e.to_dict())
        return 1

    print(f"\n  Template: {template.template_id}")
    print(f"  Captures: {template.n_captures}")
    print(f"  Enrolled: {template.created_at.isoformat()}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Enroll a user's face from still images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "images", nargs="+",
        help="Image files (3-6 captures, one face each)",
    )
    parser.add_argument(
        "--user-id", type=str, required=True,
        help="User to enroll (required)",
    )
    parser.add_argument(
        "--replace", action="store_true",
        help="Re-enroll: replace the user's existing template",
    )
    parser.add_argument(
        "--api", action="store_true",
        help="Send images to a running API server instead of enrolling locally",
    )
    parser.add_argument(
        "--api-url", type=str, default=DEFAULT_API_URL,
        help=f"API server URL (default: {DEFAULT_API_URL})",
    )
    args = parser.parse_args()

    paths = [Path(p).resolve() for p in args.images]
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        print(f"ERROR: Image file(s) not found: {', '.join(missing)}")
        return 2

    action = "RE-ENROLLMENT" if args.replace else "ENROLLMENT"
    print_banner(f"{action} ({'API server' if args.api else 'local'})")
    print(f"  User:    {args.user_id}")
    print(f"  Images:  {len(paths)}")

    start = time.time()
    if args.api:
        rc = run_api_enroll(args.api_url, args.user_id, paths, args.replace)
    else:
        rc = run_local_enroll(args.user_id, paths, args.replace)
    elapsed = time.time() - start

    if rc == 0:
        print_banner(f"{action} COMPLETE ({elapsed:.1f}s)")
    else:
        print_banner(f"{action} FAILED (exit code {rc})")

    return rc


if __name__ == "__main__":
    sys.exit(main())
