"""Register a folder of partials and export templates for client-side use."""

from __future__ import annotations

import tempfile
from pathlib import Path

from good_render import RenderCacheConfig, create_pipeline


def main() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        views = Path(tmpdir) / "views"
        (views / "partials").mkdir(parents=True)
        (views / "partials" / "avatar.hbs").write_text('<img alt="{{ user.name }}">')
        (views / "card.hbs").write_text("<div>{% include 'partials/avatar' %}{{ user.name }}</div>")

        pipeline = create_pipeline(
            RenderCacheConfig(
                templates_dir=views,
                cache_dir=Path(tmpdir) / "cache",
                cache_map_dir=Path(tmpdir),
            )
        )
        pipeline.add_partials("partials")

        for index, name in enumerate(["Ada", "Linus"]):
            print(pipeline.render("card", {"user": {"name": name}, "index": index}))

        print(pipeline.export_templates())


if __name__ == "__main__":
    main()
