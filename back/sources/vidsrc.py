"""VidSrc embed player. Uses the IMDb id whenever one is known."""

from sources.base import BuildArgs, ContentShape, StreamSource, progress_param

BASE = "https://vidsrc.to/embed"


def _movie(args: BuildArgs) -> str:
    return f"/movie/{args.preferred_id}"


def _tv(args: BuildArgs) -> str:
    return f"/tv/{args.preferred_id}/{args.season}/{args.episode}"


class Source(StreamSource):
    name = "vidsrc"
    base_url = BASE
    priority = 20
    prefers_imdb = True

    builders = {
        ContentShape.MOVIE: _movie,
        ContentShape.TV: _tv,
    }
    query_params = {
        ContentShape.MOVIE: progress_param("t"),
        ContentShape.TV: progress_param("t"),
    }
