#!/usr/bin/env python3
"""
Gatekeeper smoke client -- exercises login and profile against a running server.

Usage:
  python main.py --email test@example.com --password password123
  python main.py --email alice@x.com --password pw123456 --register --username alice
  python main.py --base-url http://localhost:8000 --email ... --password ... --logout

Steps:
  1. (optional) POST /api/auth/register
  2. POST /api/auth/login
  3. GET  /api/auth/profile with the returned access token
  4. (optional) POST /api/auth/logout with the returned refresh token

Exit status is 0 when every step succeeds, 1 otherwise.
"""

import argparse
import sys

import requests

_TIMEOUT = 10


def _post(base_url: str, path: str, body: dict) -> requests.Response:
    return requests.post(f"{base_url}{path}", json=body, timeout=_TIMEOUT)


def run(base_url: str, email: str, password: str, username: str = "", register: bool = False, logout: bool = False) -> int:
    """Run the smoke sequence and print what the server returned."""
    base_url = base_url.rstrip("/")
    print("Testing login functionality...")

    if register:
        resp = _post(base_url, "/api/auth/register", {"username": username, "email": email, "password": password})
        if resp.status_code != 201:
            print(f"  [!] Registration failed ({resp.status_code}): {resp.text}")
            return 1
        print("  Registered.")

    resp = _post(base_url, "/api/auth/login", {"email": email, "password": password})
    if not resp.ok:
        print(f"  [!] Login failed ({resp.status_code}) -- expected if the user doesn't exist")
        print(f"  Response: {resp.text}")
        return 1
    tokens = resp.json()
    print("  Login successful.")

    resp = requests.get(
        f"{base_url}/api/auth/profile",
        headers={"Authorization": f"Bearer {tokens['accessToken']}"},
        timeout=_TIMEOUT,
    )
    if not resp.ok:
        print(f"  [!] Profile request failed ({resp.status_code}): {resp.text}")
        return 1
    user = resp.json()["user"]
    print(f"  Profile: {user['username']} <{user['email']}>")
    print(f"  Last Login: {user['lastLogin']}")
    print(f"  Login Count: {user['loginCount']}")

    if logout:
        resp = _post(base_url, "/api/auth/logout", {"refreshToken": tokens["refreshToken"]})
        if not resp.ok:
            print(f"  [!] Logout failed ({resp.status_code}): {resp.text}")
            return 1
        print("  Logged out.")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Smoke-test a running Gatekeeper server.")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--username", default="", help="Required with --register")
    parser.add_argument("--register", action="store_true", help="Register the account before logging in")
    parser.add_argument("--logout", action="store_true", help="Revoke the refresh token at the end")
    args = parser.parse_args(argv)

    if args.register and not args.username:
        parser.error("--username is required with --register")

    try:
        return run(args.base_url, args.email, args.password, args.username, args.register, args.logout)
    except requests.RequestException as e:
        print(f"  [!] Could not reach {args.base_url}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
