"""Prompt wrappers for all LLM tasks, plus the seed prompt templates."""

SYSTEM_EDITOR = """You are a senior technology editor writing for a professional audience.
Be accurate, concrete, and readable. Use active voice.
Never fabricate facts, quotes, or numbers. If the sources disagree, say so."""

# Seed text for the learnable templates. The learning loop rewrites these;
# the wrappers below only ever insert them as opaque text.
DEFAULT_TEMPLATES = {
    "generation": """\
# Introduction
- Hook the reader with current relevance
- Introduce the main topic

# Key Developments
- Recent breakthroughs and announcements
- Technical details explained simply

# Practical Applications
- Real-world use cases
- Implementation tips

# Conclusion
- Summarize key takeaways
- Future outlook""",
    "evaluation": """\
1. SEO: keyword placement, title and summary quality (0-100)
2. Readability: structure, sentence length, clarity (0-100)
3. Accuracy: claims supported by the source material (0-100)
4. Originality: synthesis beyond restating sources (0-100)
5. Engagement: predicted reader interest and dwell time (0-100)""",
}

GENERATE_ARTICLE = """\
Write a comprehensive article about the trending topic below, based only on \
the collected source material.

TOPIC KEYWORD: {keyword}
RELATED TERMS: {terms}
SOURCES: {sources}
SOURCE MATERIAL:
{excerpts}

STRUCTURE:
{structure}

Respond in EXACTLY this JSON format (no markdown fences, no extra text):
{{
    "title": "Article title",
    "content": "Full article body in Markdown",
    "meta_description": "Summary of at most 160 characters",
    "keywords": ["keyword1", "keyword2"],
    "estimated_reading_time": 5
}}"""

EVALUATE_ARTICLE = """\
Evaluate the quality of the following article.

CRITERIA:
{criteria}

TITLE: {title}
SUMMARY: {summary}
CONTENT:
{content}

Respond in EXACTLY this JSON format (no markdown fences, no extra text):
{{
    "total_score": 0-100,
    "seo_score": 0-100,
    "readability_score": 0-100,
    "accuracy_score": 0-100,
    "originality_score": 0-100,
    "engagement_score": 0-100,
    "improvements": ["specific improvement 1", "specific improvement 2"],
    "strengths": ["strength 1", "strength 2"]
}}"""

IMPROVE_ARTICLE = """\
Improve the following article by addressing every point of feedback. Keep \
the topic and the facts; change structure and wording as needed.

STRUCTURE:
{structure}

FEEDBACK:
{improvements}

TITLE: {title}
SUMMARY: {summary}
CONTENT:
{content}

Respond in EXACTLY this JSON format (no markdown fences, no extra text):
{{
    "title": "Article title",
    "content": "Full article body in Markdown",
    "meta_description": "Summary of at most 160 characters",
    "keywords": ["keyword1", "keyword2"],
    "estimated_reading_time": 5
}}"""

CONFIRM_TOPIC = """\
Decide whether the following group of collected items is a trend worth a \
standalone article.

TOPIC KEYWORD: {keyword}
ITEMS:
{excerpts}

Respond in EXACTLY this JSON format (no markdown fences, no extra text):
{{
    "trend_score": 0-10,
    "should_write_article": true,
    "summary": "One sentence on why"
}}"""

LEARN_FROM_PERFORMANCE = """\
Analyze the performance of recently published articles and extract what \
made the successful ones work.

AGGREGATES:
{aggregates}

ARTICLES (most viewed first):
{articles}

CURRENT GENERATION TEMPLATE:
{generation_template}

CURRENT EVALUATION TEMPLATE:
{evaluation_template}

Respond in EXACTLY this JSON format (no markdown fences, no extra text):
{{
    "success_patterns": {{
        "title_patterns": ["pattern1", "pattern2"],
        "content_patterns": ["pattern1", "pattern2"],
        "optimal_length": 2500,
        "best_posting_time": "HH:MM"
    }},
    "failure_patterns": ["issue1", "issue2"],
    "prompt_improvements": {{
        "generation": "Full improved generation template",
        "evaluation": "Full improved evaluation template"
    }},
    "improvement_score": 0-100
}}"""
