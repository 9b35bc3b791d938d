"""Link a GitHub repository so the background sync picks it up.

1. Resolve owner/name against the GitHub API (validated payload)
2. Upsert the repositories row keyed by the GitHub repository id
3. Optionally store the per-repository sync credential

Usage:
    python scripts/link_repo.py owner/name [--token TOKEN]
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

load_dotenv(ROOT / ".env")

from repowatch.core.github import parse_repo_ref
from repowatch.core.logging import setup_logging
from repowatch.deps import dispose_engine, get_repository_service, init_session_factory
from repowatch.engines.pr_sync.github_client import GitHubClient
from repowatch.engines.pr_sync.payloads import GitHubRepoPayload, parse_payload


async def main(ref: str, token: str | None) -> int:
    try:
        owner, name = parse_repo_ref(ref)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    token = token or os.environ.get("GITHUB_TOKEN")
    async with GitHubClient(token) as client:
        repo = parse_payload(
            GitHubRepoPayload, await client.get_repo(owner, name), f"{owner}/{name}"
        )

    factory = init_session_factory()
    service = get_repository_service()
    try:
        async with factory() as session:
            async with session.begin():
                row = await service.link(
                    session,
                    github_repo_id=str(repo.id),
                    owner=repo.owner.login,
                    name=repo.name,
                    url=repo.html_url,
                    default_branch=repo.default_branch,
                    description=repo.description,
                )
                if token:
                    await service.set_access_token(session, row.id, token)
                print(f"Linked {row.full_name} ({row.id})")
                if not row.access_token:
                    print("  no access token stored; background sync will skip it")
    finally:
        await dispose_engine()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("repo", help="owner/name or GitHub URL")
    parser.add_argument("--token", help="access token stored for background syncs")
    args = parser.parse_args()
    setup_logging()
    sys.exit(asyncio.run(main(args.repo, args.token)))
