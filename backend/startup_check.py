"""
Startup environment variable validator.

Run before uvicorn/celery in the container entrypoint. Exits with code 1
and lists every missing variable so the deploy fails instead of crash-looping.
"""

import os
import sys

REQUIRED = {
    "JWT_SECRET": (
        "JWT signing secret. "
        'Generate one: python -c "import secrets; print(secrets.token_hex(32))"'
    ),
}

# ── At least one in each group must be set ────────────────────────────────────
REQUIRED_ONE_OF = [
    {
        "vars": ["AI_GATEWAY_API_KEY", "LOVABLE_API_KEY"],
        "hint": "The AI gateway key is required for note structuring and the math tutor.",
    },
]

RECOMMENDED = {
    "REDIS_URL": "Redis URL for the notes ETag cache and the Celery queue.",
    "DATABASE_URL": "Defaults to a local SQLite file under instance/.",
    "HTTPS_ONLY": 'Set to "true" in production so refresh cookies are sent over HTTPS only.',
}


def _check() -> bool:
    errors: list[str] = []
    warnings: list[str] = []

    for var, hint in REQUIRED.items():
        if not os.getenv(var):
            errors.append(f"  MISSING  {var}\n           {hint}")

    for group in REQUIRED_ONE_OF:
        if not any(os.getenv(v) for v in group["vars"]):
            names = " | ".join(group["vars"])
            errors.append(f"  MISSING  one of: {names}\n           {group['hint']}")

    for var, hint in RECOMMENDED.items():
        if not os.getenv(var):
            warnings.append(f"  WARN  {var} not set: {hint}")

    if os.getenv("CELERY_ENABLED", "false").lower() == "true" and not os.getenv("CELERY_BROKER_URL") \
            and not os.getenv("REDIS_URL"):
        errors.append("  MISSING  CELERY_BROKER_URL or REDIS_URL\n           CELERY_ENABLED is true.")

    if warnings:
        print("=" * 65)
        print("startup_check: WARNINGS (non-fatal)")
        print("=" * 65)
        for w in warnings:
            print(w)
        print()

    if errors:
        print("=" * 65)
        print("startup_check: FAILED (missing required environment variables)")
        print("=" * 65)
        for e in errors:
            print(e)
        print("=" * 65)
        return False

    print("startup_check: OK")
    return True


if __name__ == "__main__":
    if not _check():
        sys.exit(1)
