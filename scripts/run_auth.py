"""
One-Command Authentication

Verifies one still image against a user's enrolled template, either
in-process through the core services or through a running API server.

Usage:
    # Local mode (loads the face model in this process)
    python scripts/run_auth.py --user-id alice capture.jpg

    # API mode (requires the server: python -m api.app)
    python scripts/run_auth.py --api --user-id alice capture.jpg

Exit codes:
    0: MATCH, 1: NO MATCH or rejected capture, 2: connection or setup error
"""

import argparse
import base64
import json
import sys
import time
from pathlib import Path
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


def print_result(authenticated: bool, confidence_percent: int, distance: float):
    print(f"\n  Result:     {'MATCH' if authenticated else 'NO MATCH'}")
    print(f"  Confidence: {confidence_percent}%")
    print(f"  Distance:   {distance:.4f}")


def print_error(body: dict):
    print(f"\n  ERROR [{body.get('code', 'UNKNOWN')}]: {body.get('error', body)}")
    details = body.get("details") or {}
    for key, value in details.items():
        print(f"    {key}: {value}")


def run_api_auth(api_url: str, user_id: str, image_path: Path) -> int:
    """Send one image to the API server and display the decision.

    Returns:
        0 for MATCH, 1 for NO MATCH or rejection, 2 for connection error.
    """
    with open(image_path, "rb") as f:
        payload = {"image": base64.b64encode(f.read()).decode("ascii")}

    url = f"{api_url}/face-auth/{user_id}/authenticate"
    print(f"  Sending image to {url} ...")

    req = Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )

    try:
        with urlopen(req, timeout=120) as resp:
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
        return 2

    print_result(result["authenticated"], result["confidence_percent"], result["distance"])
    print(f"  Server time: {result['processing_time_sec']:.2f}s")
    return 0 if result["authenticated"] else 1


def run_local_auth(user_id: str, image_path: Path) -> int:
    """Authenticate in-process through the core services.

    Returns:
        0 for MATCH, 1 for NO MATCH or rejection.
    """
    from core.authentication_service import get_authentication_service
    from core.config import get_face_extraction_config
    from core.errors import FaceAuthError
    from core.face_extractor import decode_image

    service = get_authentication_service()
    max_pixels = get_face_extraction_config().get("max_image_pixels")

    try:
        image = decode_image(image_path.read_bytes(), max_pixels=max_pixels)
        result = service.authenticate(user_id, image)
    except FaceAuthError as e:
        print_error(e.to_dict())
        return 1

    print_result(result.is_match, result.confidence_percent, result.distance)
    if result.error:
        print(f"  Reason:     {result.error}")
    return 0 if result.is_match else 1


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Authenticate a user's face from one still image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("image", help="Capture image file (one face)")
    parser.add_argument(
        "--user-id", type=str, required=True,
        help="User claiming the identity (required)",
    )
    parser.add_argument(
        "--api", action="store_true",
        help="Send the image to a running API server instead of matching locally",
    )
    parser.add_argument(
        "--api-url", type=str, default=DEFAULT_API_URL,
        help=f"API server URL (default: {DEFAULT_API_URL})",
    )
    args = parser.parse_args()

    image_path = Path(args.image).resolve()
    if not image_path.is_file():
        print(f"ERROR: Image file not found: {image_path}")
        return 2

    print_banner(f"AUTHENTICATION ({'API server' if args.api else 'local'})")
    print(f"  User:   {args.user_id}")
    print(f"  Image:  {image_path}")

    start = time.time()
    if args.api:
        rc = run_api_auth(args.api_url, args.user_id, image_path)
    else:
        rc = run_local_auth(args.user_id, image_path)
    elapsed = time.time() - start

    if rc == 0:
        print_banner(f"AUTHENTICATED ({elapsed:.1f}s)")
    elif rc == 1:
        print_banner(f"NOT AUTHENTICATED ({elapsed:.1f}s)")
    else:
        print_banner(f"AUTHENTICATION ERROR (exit code {rc})")

    return rc


if __name__ == "__main__":
    sys.exit(main())
