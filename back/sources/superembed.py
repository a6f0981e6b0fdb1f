"""SuperEmbed (multiembed.mov) direct-stream page, addressed by TMDB id."""

from sources.base import BuildArgs, ContentShape, StreamSource

BASE = "https://multiembed.mov"


def _movie(args: BuildArgs) -> str:
    return f"/directstream.php?video_id={args.media_id}&tmdb=1"


def _tv(args: BuildArgs) -> str:
    return f"/directstream.php?video_id={args.media_id}&tmdb=1&s={args.season}&e={args.episode}"


class Source(StreamSource):
    name = "superembed"
    base_url = BASE
    priority = 40

    builders = {
        ContentShape.MOVIE: _movie,
        ContentShape.TV: _tv,
    }
