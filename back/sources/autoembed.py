"""AutoEmbed player, addressed by TMDB id."""

from sources.base import ContentShape, StreamSource

BASE = "https://autoembed.co"


class Source(StreamSource):
    name = "autoembed"
    base_url = BASE
    priority = 50

    builders = {
        ContentShape.MOVIE: lambda args: f"/movie/tmdb/{args.media_id}",
        ContentShape.TV: lambda args: f"/tv/tmdb/{args.media_id}-{args.season}-{args.episode}",
    }
