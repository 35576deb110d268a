"""
Curated sources, starter packs and "you might also like" picks.

A subscriber with no sources is offered the starter packs (one per
category). Once they have sources, recommendations come from the same
library minus what they already follow, spread across categories so one
interest does not crowd out the rest.
"""

import random
from functools import lru_cache

from pydantic import BaseModel, Field

from signal_digest.ingestion.resolver import domain_favicon
from signal_digest.ingestion.schemas import SourceType

RECOMMENDATION_COUNT = 6


class CuratedSource(BaseModel):
    """A hand-picked, known-good feed."""

    id: str
    name: str
    type: SourceType
    url: str = Field(..., description="Feed endpoint")
    original_url: str = Field(..., description="Public page for the source")
    favicon: str = ""
    category: str
    description: str = ""


class StarterPack(BaseModel):
    """All curated sources of one category, offered as a bundle."""

    id: str
    name: str
    description: str
    icon: str
    category: str
    sources: list[CuratedSource]


# category -> (id, name, type, feed url, public url, description)
_LIBRARY: dict[str, tuple[tuple[str, str, str, str, str, str], ...]] = {
    "tech_startups": (
        ("tech_hn", "Hacker News", "rss",
         "https://news.ycombinator.com/rss",
         "https://news.ycombinator.com",
         "The front page of the internet for builders."),
        ("tech_pg", "Paul Graham", "rss",
         "http://www.aaronsw.com/2002/feeds/pgessays.rss",
         "http://paulgraham.com/articles.html",
         "Essays on startups, technology, and life."),
        ("tech_verge", "The Verge", "rss",
         "https://www.theverge.com/rss/index.xml",
         "https://www.theverge.com",
         "Technology, science, art, and culture."),
        ("tech_tc", "TechCrunch", "rss",
         "https://techcrunch.com/feed/",
         "https://techcrunch.com",
         "Startup and technology news."),
        ("tech_stratechery", "Stratechery", "rss",
         "https://stratechery.com/feed/",
         "https://stratechery.com",
         "Ben Thompson on strategy and tech business models."),
        ("tech_allin", "All-In Podcast", "podcast",
         "https://feeds.megaphone.fm/all-in-with-chamath-jason-sacks-friedberg",
         "https://www.allinpodcast.co",
         "Industry, tech, politics from four billionaire besties."),
        ("tech_ycombinator", "Y Combinator", "youtube",
         "https://www.youtube.com/feeds/videos.xml?channel_id=UCxI5-x_s5V2_OqS62_0z-0A",
         "https://www.youtube.com/@ycombinator",
         "Startup school, founder interviews, and demo days."),
        ("tech_r_startups", "r/startups", "reddit",
         "https://www.reddit.com/r/startups/.rss",
         "https://www.reddit.com/r/startups",
         "Community discussions on building and scaling startups."),
    ),
    "finance_markets": (
        ("fin_bloomberg", "Bloomberg Markets", "rss",
         "https://feeds.bloomberg.com/markets/news.rss",
         "https://www.bloomberg.com",
         "Global financial markets and business news."),
        ("fin_economist", "The Economist", "rss",
         "https://www.economist.com/global-business-review/rss.xml",
         "https://www.economist.com",
         "World news, politics, economics, and business."),
        ("fin_wsj", "Wall Street Journal", "rss",
         "https://feeds.a.dj.com/rss/RSSMarketsMain.xml",
         "https://www.wsj.com",
         "Breaking news and analysis from global markets."),
        ("fin_ft", "Financial Times", "rss",
         "https://www.ft.com/?format=rss",
         "https://www.ft.com",
         "Authoritative coverage of global finance."),
        ("fin_morningbrew", "Morning Brew", "newsletter",
         "https://www.morningbrew.com/daily/rss",
         "https://www.morningbrew.com",
         "Business news explained in plain English."),
        ("fin_acquired", "Acquired Podcast", "podcast",
         "https://feeds.pacific-content.com/acquired",
         "https://www.acquired.fm",
         "Deep dives into great companies and IPOs."),
        ("fin_patrickboyle", "Patrick Boyle", "youtube",
         "https://www.youtube.com/feeds/videos.xml?channel_id=UCQ7mOJ1FjImFIh8LUKhjEfg",
         "https://www.youtube.com/@PBoyle",
         "Hedge fund manager explaining finance and economics."),
        ("fin_r_investing", "r/investing", "reddit",
         "https://www.reddit.com/r/investing/.rss",
         "https://www.reddit.com/r/investing",
         "Community discussions on investing and markets."),
    ),
    "ai_revolution": (
        ("ai_openai", "OpenAI Blog", "rss",
         "https://openai.com/blog/rss.xml",
         "https://openai.com/blog",
         "Research and product updates from OpenAI."),
        ("ai_anthropic", "Anthropic Research", "rss",
         "https://www.anthropic.com/research/rss.xml",
         "https://www.anthropic.com/research",
         "Safety-focused AI research and breakthroughs."),
        ("ai_deepmind", "Google DeepMind", "rss",
         "https://deepmind.google/blog/rss.xml",
         "https://deepmind.google/blog",
         "Cutting-edge AI research from DeepMind."),
        ("ai_karpathy", "Andrej Karpathy", "youtube",
         "https://www.youtube.com/@AndrejKarpathy",
         "https://www.youtube.com/@AndrejKarpathy",
         "Deep learning from first principles."),
        ("ai_twomin", "Two Minute Papers", "youtube",
         "https://www.youtube.com/@TwoMinutePapers",
         "https://www.youtube.com/@TwoMinutePapers",
         "AI research papers explained in minutes."),
        ("ai_tldr", "TLDR AI", "newsletter",
         "https://tldr.tech/ai/feed",
         "https://tldr.tech/ai",
         "Daily AI news in 5 minutes."),
        ("ai_r_machinelearning", "r/MachineLearning", "reddit",
         "https://www.reddit.com/r/MachineLearning/.rss",
         "https://www.reddit.com/r/MachineLearning",
         "Academic ML research and industry discussion."),
        ("ai_lexfridman", "Lex Fridman Podcast", "podcast",
         "https://lexfridman.com/feed/podcast/",
         "https://lexfridman.com/podcast/",
         "Long-form conversations on AI, science, and philosophy."),
    ),
    "world_news": (
        ("world_bbc", "BBC News", "rss",
         "http://feeds.bbci.co.uk/news/rss.xml",
         "https://www.bbc.com/news",
         "Trusted global news coverage."),
        ("world_reuters", "Reuters", "rss",
         "https://www.reutersagency.com/feed/",
         "https://www.reuters.com",
         "Wire service. Facts first, fast."),
        ("world_aljazeera", "Al Jazeera", "rss",
         "https://www.aljazeera.com/xml/rss/all.xml",
         "https://www.aljazeera.com",
         "Global perspective from the Middle East."),
        ("world_nyt", "New York Times", "rss",
         "https://rss.nytimes.com/services/xml/rss/nyt/World.xml",
         "https://www.nytimes.com/section/world",
         "In-depth world reporting and analysis."),
        ("world_guardian", "The Guardian", "rss",
         "https://www.theguardian.com/world/rss",
         "https://www.theguardian.com/world",
         "Independent journalism from London."),
        ("world_vox", "Vox", "rss",
         "https://www.vox.com/rss/index.xml",
         "https://www.vox.com",
         "Explainer journalism on policy and culture."),
        ("world_r_worldnews", "r/worldnews", "reddit",
         "https://www.reddit.com/r/worldnews/.rss",
         "https://www.reddit.com/r/worldnews",
         "Breaking world news from across the globe."),
        ("world_johnoliver", "Last Week Tonight", "youtube",
         "https://www.youtube.com/@LastWeekTonight",
         "https://www.youtube.com/@LastWeekTonight",
         "Deep dives into current events with John Oliver."),
    ),
    "science_space": (
        ("sci_nasa", "NASA", "rss",
         "https://www.nasa.gov/rss/dyn/breaking_news.rss",
         "https://www.nasa.gov",
         "Space exploration, discovery, and missions."),
        ("sci_nature", "Nature", "rss",
         "http://feeds.nature.com/nature/rss/current",
         "https://www.nature.com",
         "Premier international science journal."),
        ("sci_quanta", "Quanta Magazine", "rss",
         "https://api.quantamagazine.org/feed/",
         "https://www.quantamagazine.org",
         "Math, physics, biology, and computer science stories."),
        ("sci_scientificamerican", "Scientific American", "rss",
         "http://rss.sciam.com/ScientificAmerican-Global",
         "https://www.scientificamerican.com",
         "Accessible science journalism since 1845."),
        ("sci_veritasium", "Veritasium", "youtube",
         "https://www.youtube.com/@veritasium",
         "https://www.youtube.com/@veritasium",
         "Science and engineering explained visually."),
        ("sci_kurzgesagt", "Kurzgesagt", "youtube",
         "https://www.youtube.com/@kurzgesagt",
         "https://www.youtube.com/@kurzgesagt",
         "Animated explainers on science and philosophy."),
        ("sci_huberman", "Huberman Lab", "podcast",
         "https://feeds.megaphone.fm/hubermanlab",
         "https://hubermanlab.com",
         "Neuroscience tools for everyday life."),
        ("sci_r_science", "r/science", "reddit",
         "https://www.reddit.com/r/science/.rss",
         "https://www.reddit.com/r/science",
         "Peer-reviewed research and scientific discussion."),
    ),
    "design_creativity": (
        ("design_sidebar", "Sidebar", "rss",
         "https://sidebar.io/feed.xml",
         "https://sidebar.io",
         "Five best design links, every day."),
        ("design_smashing", "Smashing Magazine", "rss",
         "https://www.smashingmagazine.com/feed",
         "https://www.smashingmagazine.com",
         "For web designers and developers."),
        ("design_alistapart", "A List Apart", "rss",
         "https://alistapart.com/main/feed/",
         "https://alistapart.com",
         "Web standards, best practices, and design thinking."),
        ("design_figma", "Figma", "youtube",
         "https://www.youtube.com/feeds/videos.xml?channel_id=UCQsVmhSa4X-G3lHlUtejzLA",
         "https://www.youtube.com/@Figma",
         "Design tool tutorials, Config talks, and workflows."),
        ("design_thefutur", "The Futur", "youtube",
         "https://www.youtube.com/feeds/videos.xml?channel_id=UC-b3c7kxa5vU-bnmaROgvog",
         "https://www.youtube.com/@thefutur",
         "Business of design, branding, and creative strategy."),
        ("design_99pi", "99% Invisible", "podcast",
         "https://feeds.simplecast.com/BqbsxVfO",
         "https://99percentinvisible.org",
         "Stories about the design and architecture of everything."),
        ("design_r_design", "r/design", "reddit",
         "https://www.reddit.com/r/design/.rss",
         "https://www.reddit.com/r/design",
         "Community for designers of all disciplines."),
        ("design_brandnew", "Brand New", "rss",
         "https://www.underconsideration.com/brandnew/feed",
         "https://www.underconsideration.com/brandnew/",
         "Reviews of corporate and brand identity work."),
    ),
}

# (pack id, name, description, icon, category)
_PACKS = (
    ("pack_tech", "Tech & Startups",
     "The pulse of Silicon Valley and the startup ecosystem.", "Zap", "tech_startups"),
    ("pack_finance", "Finance & Markets",
     "Global markets, economics, and business intelligence.", "TrendingUp", "finance_markets"),
    ("pack_ai", "AI Revolution",
     "Keep up with the exponential curve of AI progress.", "Bot", "ai_revolution"),
    ("pack_world", "World News",
     "Balanced perspectives on global events.", "Globe", "world_news"),
    ("pack_science", "Science & Space",
     "Discoveries from the edge of human knowledge.", "Atom", "science_space"),
    ("pack_design", "Design & Creativity",
     "Inspiration for pixels, products, and user experiences.", "Palette", "design_creativity"),
)


@lru_cache(maxsize=1)
def curated_library() -> tuple[CuratedSource, ...]:
    return tuple(
        CuratedSource(
            id=source_id,
            name=name,
            type=SourceType(type_value),
            url=url,
            original_url=original_url,
            favicon=domain_favicon(original_url),
            category=category,
            description=description,
        )
        for category, rows in _LIBRARY.items()
        for source_id, name, type_value, url, original_url, description in rows
    )


def starter_packs() -> list[StarterPack]:
    library = curated_library()
    return [
        StarterPack(
            id=pack_id,
            name=name,
            description=description,
            icon=icon,
            category=category,
            sources=[s for s in library if s.category == category],
        )
        for pack_id, name, description, icon, category in _PACKS
    ]


def contextual_recommendations(
    existing_urls: list[str],
    count: int = RECOMMENDATION_COUNT,
    rng: random.Random | None = None,
) -> list[CuratedSource]:
    """
    Up to ``count`` curated sources the subscriber does not already follow.

    One random pick per category first (categories in random order), then
    the remaining slots are filled from whatever is left.

    Args:
        existing_urls: Feed endpoints and public URLs the subscriber has
        count: How many sources to return at most
        rng: Random source, for reproducible picks
    """
    rng = rng or random.Random()
    following = {u.strip().lower() for u in existing_urls if u}
    candidates = [
        s for s in curated_library()
        if s.url.lower() not in following and s.original_url.lower() not in following
    ]

    by_category: dict[str, list[CuratedSource]] = {}
    for source in candidates:
        by_category.setdefault(source.category, []).append(source)

    categories = list(by_category)
    rng.shuffle(categories)

    picks: list[CuratedSource] = []
    for category in categories[:count]:
        pool = by_category[category]
        picks.append(pool.pop(rng.randrange(len(pool))))

    if len(picks) < count:
        remaining = [s for s in candidates if s not in picks]
        rng.shuffle(remaining)
        picks.extend(remaining[: count - len(picks)])

    return picks
