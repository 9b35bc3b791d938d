"""GitHub repository reference helpers."""


def parse_repo_ref(ref: str) -> tuple[str, str]:
    """Extract (owner, name) from ``owner/name`` or a GitHub URL.

    Raises ValueError if the reference cannot be parsed.
    """
    result = _extract_owner_repo(ref)
    if result is None:
        raise ValueError(f"cannot parse GitHub repository reference: {ref!r}")
    owner, name = result.split("/", 1)
    return owner, name


def _extract_owner_repo(ref: str) -> str | None:
    """Extract 'owner/repo' from a repository reference.

    Handles:
      - owner/repo
      - https://github.com/owner/repo
      - https://github.com/owner/repo.git
      - git@github.com:owner/repo.git
    """
    ref = ref.strip().rstrip("/")
    if ref.endswith(".git"):
        ref = ref[:-4]

    # SSH format: git@github.com:owner/repo
    if ref.startswith("git@"):
        colon_idx = ref.find(":")
        if colon_idx == -1:
            return None
        ref = ref[colon_idx + 1 :]

    parts = ref.split("/")
    if len(parts) == 2:
        owner, repo = parts
    elif len(parts) > 2 and "github.com" in parts:
        idx = parts.index("github.com")
        if len(parts) != idx + 3:
            return None
        owner, repo = parts[idx + 1], parts[idx + 2]
    else:
        return None
    if not owner or not repo:
        return None
    return f"{owner}/{repo}"
