"""
Dev smoke script:
- Builds the Flask app over a throwaway vault using test_client (no external server needed)
- GET /api/health, POST /api/notes/created with a sample Cubox clip, POST /api/notes/strip
- POST /api/notes/summarize only when CUBOX_TIDY_SMOKE_API_KEY is set
- Writes responses to dev_smoke.json (in repo root)
Note: the summarize step performs a REAL call against the configured endpoint.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from cubox_tidy.app import create_app
from cubox_tidy.config import AppConfig, VaultConfig

SAMPLE_CLIP = "\n".join([
    "# Sample article",
    "cubox://card/12345",
    "A paragraph worth keeping.",
    "https://cubox.pro/my/highlight?id=678",
    "Another paragraph.",
    "https://example.com/original-article",
])


def main() -> int:
    results = {}
    with tempfile.TemporaryDirectory() as tmp:
        vault_root = Path(tmp)
        (vault_root / "Cubox").mkdir()
        cfg = AppConfig(vault=VaultConfig(root=vault_root, strip_delay_seconds=0.0))
        app = create_app(cfg)
        plugin = app.extensions["cubox_tidy"]["plugin"]
        host = app.extensions["cubox_tidy"]["host"]
        api_key = os.getenv("CUBOX_TIDY_SMOKE_API_KEY", "")

        with app.test_client() as c:
            h = c.get("/api/health")
            results["health"] = h.get_json()

            c.put("/api/settings", json={"target_folder": "Cubox", "api_key": api_key or None})

            created = c.post("/api/notes/created", json={"path": "Cubox/sample.md", "content": SAMPLE_CLIP})
            host.run(plugin.scheduler.drain(), timeout=10)
            results["created"] = created.get_json()
            results["after_create"] = (vault_root / "Cubox" / "sample.md").read_text(encoding="utf-8")

            s = c.post("/api/notes/strip", json={"path": "Cubox/sample.md"})
            results["strip"] = s.get_json()

            if api_key:
                r = c.post("/api/notes/summarize", json={"path": "Cubox/sample.md"})
                results["summarize"] = {"status": r.status_code, "body": r.get_json()}
                results["after_summarize"] = (vault_root / "Cubox" / "sample.md").read_text(encoding="utf-8")

        host.stop()

    out = Path("dev_smoke.json")
    out.write_text(json.dumps(results, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"Health status: {h.status_code}")
    print(f"Created status: {created.status_code}; strip status: {s.status_code}")
    print(f"Summarize: {'skipped (no CUBOX_TIDY_SMOKE_API_KEY)' if not api_key else results['summarize']['status']}")
    print(f"Results -> {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
