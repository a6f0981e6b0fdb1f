"""
Videasy embed player (player.videasy.net).

Plays anime natively from AniList ids, so anime never needs ID translation
here. TV embeds get the player's episode navigation features.
"""

from sources.base import BuildArgs, ContentShape, StreamSource, progress_param

BASE = "https://player.videasy.net"
ACCENT_COLOR = "e50914"
TV_FEATURES = ["nextEpisode", "autoplayNextEpisode", "episodeSelector"]

_progress = progress_param("progress")


def _movie(args: BuildArgs) -> str:
    return f"/movie/{args.media_id}"


def _tv(args: BuildArgs) -> str:
    return f"/tv/{args.media_id}/{args.season}/{args.episode}"


def _anime(args: BuildArgs) -> str:
    return f"/anime/{args.media_id}/{args.episode}"


def _anime_movie(args: BuildArgs) -> str:
    return f"/anime/{args.media_id}"


def _tv_params(args: BuildArgs) -> dict:
    return {
        **{feature: "true" for feature in TV_FEATURES},
        "color": ACCENT_COLOR,
        **_progress(args),
    }


def _anime_params(args: BuildArgs) -> dict:
    params = {"dub": "true"} if args.dub else {}
    return {**params, **_progress(args)}


class Source(StreamSource):
    name = "videasy"
    base_url = BASE
    priority = 10

    builders = {
        ContentShape.MOVIE: _movie,
        ContentShape.TV: _tv,
        ContentShape.ANIME: _anime,
        ContentShape.ANIME_MOVIE: _anime_movie,
    }
    query_params = {
        ContentShape.TV: _tv_params,
        ContentShape.ANIME: _anime_params,
        ContentShape.ANIME_MOVIE: _anime_params,
    }
    features = {ContentShape.TV: TV_FEATURES}
