"""Render a template twice and show where the renderer came from."""

from __future__ import annotations

import tempfile
from pathlib import Path

from good_render import RenderCacheConfig, create_pipeline


def main() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "templates").mkdir()
        (root / "templates" / "hello.hbs").write_text("Hello {{ name }}!")

        config = RenderCacheConfig(
            templates_dir=root / "templates",
            cache_dir=root / "cache" / "artifacts",
            cache_map_dir=root / "cache",
        )
        pipeline = create_pipeline(config)

        print(pipeline.render("hello", {"name": "Chris"}))
        print(pipeline.render("hello", {"name": "Sam"}))

        # Drop the memory tier; the artifact on disk is reused without compiling.
        pipeline.cache.clear_memory()
        print(pipeline.render("hello"))
        print(pipeline.cache.stats.as_dict())


if __name__ == "__main__":
    main()
