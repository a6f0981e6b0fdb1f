"""Embed.su player. TMDB ids only, no native anime support."""

from sources.base import BuildArgs, ContentShape, StreamSource, progress_param

BASE = "https://embed.su/embed"


class Source(StreamSource):
    name = "embedsu"
    base_url = BASE
    priority = 30

    builders = {
        ContentShape.MOVIE: lambda args: f"/movie/{args.media_id}",
        ContentShape.TV: lambda args: f"/tv/{args.media_id}/{args.season}/{args.episode}",
    }
    query_params = {
        ContentShape.MOVIE: progress_param("time"),
        ContentShape.TV: progress_param("time"),
    }
