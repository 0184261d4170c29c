"""Prompt templates for SourceLens analyses."""

from src.data_model import DocumentMetadata


COUNTER_NARRATIVE_LENSES: tuple[str, ...] = (
    "Subaltern perspective",
    "Power structures",
    "Historical contingency",
    "Silences and omissions",
    "Cross-cultural context",
)

METADATA_EXTRACTION_INSTRUCTION = """Extract document metadata from the provided text.
Return ONLY a JSON object with these fields:
- date: the most likely publication date in ISO format (YYYY-MM-DD) or empty string if uncertain
- author: the most likely author name or empty string if uncertain. If the first name is abbreviated, expand it to the most likely result (i.e. Wm -> William)
- title: the most likely document title or empty string if uncertain
- summary: a VERY SHORT 5-6 word summary of the document content
- documentEmoji: a single emoji that represents the document's content, theme, or time period
- documentType: the type of document (e.g., Letter, Diary, Speech) or empty string if uncertain
- genre: the literary or historical genre of the document or empty string if uncertain
- placeOfPublication: where the document was created or published, or empty string if uncertain
- academicSubfield: which academic fields might study this document, or empty string if uncertain
- tags: an array of 3-5 keyword tags related to the document's content and context
- researchValue: a brief 1-2 sentence description of what this document might be useful for researching
"""

_ANALYSIS_TEMPLATE = """You are the analysis engine of SourceLens, an expert level humanistic research tool for scholars and researchers. Your job is to analyze primary sources, keeping in mind the human user's research goals and the provided date and author of the source.

You are able to analyze sources in any language, but you respond in English unless the user asks otherwise.
Here is your current source:

{context}

PRIMARY SOURCE:
{source}

Please provide:
1. A BRIEF one-sentence summary of the source
2. A BRIEF one-sentence preliminary analysis that addresses the research goals while considering the historical context of the author and date
3. Three EXTREMELY BRIEF (as few as 4-5 words) follow-up questions that would help you understand and think creatively about the source. These are questions you want the researcher to answer, ideally with large amounts of context, so you can develop your own analysis. They may be pointed, surprising and telegraphic.

Format your response as follows:
SUMMARY: [your one-sentence summary]
PRELIMINARY ANALYSIS: [your one-sentence analysis]
FOLLOW-UP QUESTIONS:
1. [first question]
2. [second question]
3. [third question]
"""

_FALLBACK_ANALYSIS_TEMPLATE = """You are a research assistant analyzing a primary source for a historian.

{context}

PRIMARY SOURCE:
{source}

Respond ONLY with a JSON object, no markdown fences or extra text, with these fields:
- "summary": one-sentence summary of the source
- "analysis": one short paragraph of preliminary analysis tied to the research goals
- "followupQuestions": array of exactly three short follow-up questions for the researcher
"""

_COUNTER_NARRATIVE_TEMPLATE = """You are a counter-narrative analyst, specializing in provocative, original, rigorous and succinct interpretations of primary sources. Generate a counter-narrative reading of the following source that reveals perspectives, power dynamics, or historical contexts that conventional readings miss.

{context}

PRIMARY SOURCE:
{source}

Choose AT MOST TWO of these analytical lenses, whichever reveal the most:
{lenses}

Write a MAXIMUM OF TWO PARAGRAPHS:
- First, state the conventional or dominant reading of this source in one sentence, then name the lenses you chose.
- Then develop the counter-narrative: reconstruct what person, theme, event or place the source excludes, cite specific textual evidence for your reading, and end with one genuinely surprising insight.

Stay grounded in historical and scholarly accuracy. Be thoughtful and well-reasoned, not merely contrarian. No jargon, no preamble.
"""

_DETAILED_ANALYSIS_TEMPLATE = """You are an expert humanities research assistant analyzing a primary source for a scholar.

{context}

PRIMARY SOURCE:
{source}

Provide an analysis of this primary source that addresses the following, in one or two sentences each:

1. CONTEXT: Place this source in its historical context, including relevant events, movements, or trends from the period.

2. AUTHOR PERSPECTIVE: Analyze the author's background, potential biases, and how these might influence the source.

3. KEY THEMES: Identify the main themes, arguments, or narratives present in the source.

4. EVIDENCE & RHETORIC: Analyze how the author uses evidence, language, or rhetoric to convey their message.

5. SIGNIFICANCE: Explain why this source is valuable for the stated research goals.

Keep it brief but content rich. Give specific examples from the text where relevant and cite relevant academic sources in Chicago style.
"""

_DRAFT_SUMMARY_TEMPLATE = """You are a specialized system for creating structured summaries of academic writing and research drafts.

DRAFT TO SUMMARIZE:
{content}

DRAFT METADATA:
Title: {title}

TASK:
1. Identify 3-7 logical sections based on content, themes, or existing headings.
2. For each section give a descriptive title, a one-sentence summary, and the full text of that section from the original document.
3. Provide a brief overall summary of the entire draft (2-3 sentences).

Respond ONLY with a JSON object of this shape:
{{"overallSummary": "...", "sections": [{{"id": "section-1", "title": "...", "summary": "...", "fullText": "..."}}]}}
"""


def build_source_context(metadata: DocumentMetadata, perspective: str = "") -> str:
    """Build the metadata header shared by the source-analysis prompts.

    Args:
        metadata: Document metadata.
        perspective: Optional interpretive lens chosen by the user.

    Returns:
        Header lines with the date, author, goals and optional context.
    """
    lines = [
        f"SOURCE DATE: {metadata.date}",
        f"SOURCE AUTHOR: {metadata.author}",
        f"RESEARCH GOALS: {metadata.research_goals}",
    ]
    if metadata.additional_info:
        lines.append(f"ADDITIONAL CONTEXT: {metadata.additional_info}")
    if perspective:
        lines.append(f"ANALYTICAL PERSPECTIVE: {perspective}")
    return "\n".join(lines)


def build_analysis_prompt(
    source: str, metadata: DocumentMetadata, perspective: str = ""
) -> str:
    """Build the preliminary analysis prompt.

    Args:
        source: Primary source text.
        metadata: Document metadata.
        perspective: Optional interpretive lens.

    Returns:
        Prompt asking for summary, analysis and follow-up questions in a
        labelled plain-text format.
    """
    return _ANALYSIS_TEMPLATE.format(
        context=build_source_context(metadata, perspective), source=source
    )


def build_fallback_analysis_prompt(
    source: str, metadata: DocumentMetadata, perspective: str = ""
) -> str:
    """Build the JSON-format analysis prompt used by the fallback endpoint."""
    return _FALLBACK_ANALYSIS_TEMPLATE.format(
        context=build_source_context(metadata, perspective), source=source
    )


def build_counter_narrative_prompt(
    source: str, metadata: DocumentMetadata, perspective: str = ""
) -> str:
    """Build the counter-narrative prompt.

    The prompt caps the answer at two paragraphs and at two of the five
    lenses in COUNTER_NARRATIVE_LENSES.
    """
    lenses = "\n".join(f"- {lens}" for lens in COUNTER_NARRATIVE_LENSES)
    return _COUNTER_NARRATIVE_TEMPLATE.format(
        context=build_source_context(metadata, perspective),
        source=source,
        lenses=lenses,
    )


def build_detailed_analysis_prompt(
    source: str, metadata: DocumentMetadata, perspective: str = ""
) -> str:
    """Build the five-part detailed analysis prompt."""
    return _DETAILED_ANALYSIS_TEMPLATE.format(
        context=build_source_context(metadata, perspective), source=source
    )


def build_draft_summary_prompt(title: str, content: str) -> str:
    """Build the structured draft summary prompt.

    Args:
        title: Draft title, may be empty.
        content: Draft body, already truncated by the caller.

    Returns:
        Prompt requesting sections and an overall summary as JSON.
    """
    return _DRAFT_SUMMARY_TEMPLATE.format(
        title=title or "Untitled Draft", content=content
    )


def build_wiki_overview_prompt(
    title: str,
    source_context: dict[str, object],
    overview_type: str = "",
) -> str:
    """Build the one-sentence historical context prompt for an author or date.

    Args:
        title: Author name or date the overview is about.
        source_context: Known ``title``, ``type``, ``date`` and ``author``
            of the surrounding document.
        overview_type: ``"author"``, ``"date"``, or anything else when
            the caller cannot tell which one ``title`` is.

    Returns:
        Prompt text.
    """
    work = source_context.get("title") or "unknown"
    kind = source_context.get("type") or "document"
    date = source_context.get("date") or "unknown date"
    author = source_context.get("author") or "an author"

    if overview_type == "author":
        return (
            f'Generate a crisp, historically grounded one-sentence summary of the larger '
            f'historical context for the work titled "{work}", written by {title}.\n\n'
            f"Source context: This is a {kind} from {date} called {work} by {title}.\n\n"
            f"If {title} is unclear to you, describe what an author writing in {date} "
            "WOULD have been like, given the context.\n"
            "Your response must be ONE sentence of at most 20 words that situates the "
            'source in its historical context. Never begin with "According to" and do not '
            'hedge with "possibly" or "likely".'
        )
    if overview_type == "date":
        return (
            f"Based on {title} (if this is an exact date, note it carefully), describe "
            "relevant historical events and other contextual factors.\n\n"
            f"Source context: This is a {kind} written by {author} titled {work}.\n\n"
            "Write one or two crisp sentences covering two or three context points tied "
            "to the exact date, or the year or decade if no exact date is given. Focus on "
            "big-picture trends. No preamble."
        )
    return (
        f"Based on {title} (the name of an author OR a date), generate a crisp, "
        "historically grounded one-sentence summary of EITHER the author or the date "
        f'for the work titled "{work}".\n\n'
        f"Source context: This is a {kind} from {date} called {work}.\n\n"
        "Write NOTHING but the sentence. Summarize the historical context, not the "
        "source itself, and be specific rather than general."
    )


LARGE_DOCUMENT_CHARS = 500_000
SHORT_DOCUMENT_CHARS = 120_000

EXTRACTION_SYSTEM_INSTRUCTION = (
    "You are an expert at extracting structured information from documents. "
    "Extract only what the document supports, and be thorough, precise and "
    "consistent in formatting."
)

_EXTRACTION_TEMPLATE = """Extract the following information from the document below.

EXTRACTION REQUEST: {query}
{chunk_note}
{format_instructions}

DOCUMENT:
{content}
"""

_LIST_FORMAT_INSTRUCTIONS = """Format the result as a numbered list, one item per line.
Keep each item short and factual. If nothing matches the request, say so in one line."""

_TABLE_FORMAT_INSTRUCTIONS = """Format the result as a JSON object with two fields:
- "headers": an array of column names chosen to fit the request
- "rows": an array of rows, each an array of cell values in header order
Return ONLY the JSON object, with no markdown fences or commentary."""

_CHUNK_NOTE = (
    "\nNOTE: The document is very long, so you are given samples from its beginning, "
    "middle and end. Extract what you can from these samples.\n"
)


def sample_large_document(content: str, chunk_size: int = 30_000) -> tuple[str, bool]:
    """Reduce a very long document to representative samples.

    Documents up to LARGE_DOCUMENT_CHARS are returned whole. Longer ones
    are cut to their beginning, middle and end; documents with many lines
    also get evenly spaced section samples. A document with fewer than
    100 lines is treated as one block and its first SHORT_DOCUMENT_CHARS
    characters are kept.

    Args:
        content: Full document text.
        chunk_size: Characters per sample.

    Returns:
        The text to send and whether sampling was applied.
    """
    if len(content) <= LARGE_DOCUMENT_CHARS:
        return content, False

    if content.count("\n") < 100:
        return content[:SHORT_DOCUMENT_CHARS], True

    middle = len(content) // 2
    samples = [("BEGINNING", content[:chunk_size])]
    section_size = chunk_size // 2
    for fraction in (0.25, 0.5, 0.75):
        start = int(len(content) * fraction)
        if fraction == 0.5:
            start = max(middle - section_size // 2, 0)
        label = f"SECTION AT {int(fraction * 100)}%"
        samples.append((label, content[start : start + section_size]))
    samples.append(("END", content[-chunk_size:]))

    parts = [f"[{label} OF DOCUMENT]\n{text}" for label, text in samples]
    parts.append(
        f"[NOTE: Document of {len(content)} characters was sampled; "
        "text between samples is omitted.]"
    )
    return "\n\n...\n\n".join(parts), True


def build_extraction_prompt(
    content: str, query: str, output_format: str = "list", chunked: bool = False
) -> str:
    """Build the list or table information extraction prompt."""
    instructions = (
        _TABLE_FORMAT_INSTRUCTIONS if output_format == "table" else _LIST_FORMAT_INSTRUCTIONS
    )
    return _EXTRACTION_TEMPLATE.format(
        query=query,
        chunk_note=_CHUNK_NOTE if chunked else "",
        format_instructions=instructions,
        content=content,
    )


REFERENCE_SOURCE_CHARS = 5000

_REFERENCES_TEMPLATE = """You are a research librarian suggesting scholarly references for a primary source.

SOURCE METADATA:
Title: {title}
Author: {author}
Date: {date}
Research goals: {goals}

SOURCE EXCERPT:
{source}

Suggest 5 to 7 real, verifiable scholarly works (books, journal articles or archival collections) that would help a researcher understand this source. Do not invent works.

Respond ONLY with a JSON object of this shape:
{{"references": [{{"title": "...", "author": "...", "year": 1990, "citation": "Chicago style citation", "relevance": "one sentence on why it matters", "reliability": "one sentence on its scholarly standing", "type": "book|article|archive|other", "importance": 1-5}}]}}
"""


def build_references_prompt(source: str, metadata: DocumentMetadata) -> str:
    """Build the suggested references prompt.

    The source is cut to REFERENCE_SOURCE_CHARS characters.
    """
    excerpt = source
    if len(excerpt) > REFERENCE_SOURCE_CHARS:
        excerpt = excerpt[:REFERENCE_SOURCE_CHARS] + "..."
    return _REFERENCES_TEMPLATE.format(
        title=metadata.title or "Unknown",
        author=metadata.author or "Unknown",
        date=metadata.date or "Unknown",
        goals=metadata.research_goals or "General research",
        source=excerpt,
    )


def build_character_sketch_prompt(metadata: DocumentMetadata) -> str:
    """Build the prompt describing the author of a source for roleplay.

    The answer is labelled so parse_character_sketch can read the emoji
    and life dates back out.
    """
    return f"""Write a short character sketch of {metadata.author or "the author"}, who wrote this source around {metadata.date or "an unknown date"}.

Describe in 3-4 sentences their background, beliefs, manner of speaking and the world they lived in. If they are obscure, describe a plausible person of that time and place.

Then add these lines exactly, using "Unknown" when you cannot tell:
EMOJI: [one emoji that suits this person]
BIRTH_YEAR: [year]
DEATH_YEAR: [year]
BIRTHPLACE: [place]
"""


ROLEPLAY_SOURCE_CHARS = 1500


def build_roleplay_prompt(
    source: str,
    metadata: DocumentMetadata,
    character_sketch: str,
    conversation: list[tuple[str, str]],
    message: str,
) -> str:
    """Build the in-character reply prompt.

    Args:
        source: Source text; only the first ROLEPLAY_SOURCE_CHARS are used.
        metadata: Document metadata.
        character_sketch: Sketch of the author to play.
        conversation: Earlier ``(role, content)`` turns, oldest first.
        message: The questioner's new message.

    Returns:
        Prompt text.
    """
    author = metadata.author or "the author"
    speakers = {"user": "Questioner"}
    history = "\n".join(
        f"{speakers.get(role, author)}: {content}" for role, content in conversation
    )
    return f"""You are {author}, the author of the source below, written around {metadata.date or "an unknown date"}. Stay in character: speak with the knowledge, voice and opinions you would have had at the time, and never mention being an AI.

CHARACTER SKETCH:
{character_sketch}

YOUR SOURCE:
{source[:ROLEPLAY_SOURCE_CHARS]}

CONVERSATION SO FAR:
{history or "(none)"}

Questioner: {message}

Reply as {author} in at most two short paragraphs.
{author}:"""


SUPPORTED_LANGUAGES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ru": "Russian",
    "ar": "Arabic",
    "fa": "Farsi",
    "eme": "Early Modern English",
    "emoji": "Emoji/ASCII",
    "llmese": "LLMese",
}

TRANSLATOR_SYSTEM_INSTRUCTION = (
    "You are an expert translator of historical documents. You preserve meaning, "
    "tone and historical register, and you never add commentary the user did not ask for."
)

_EXPLANATION_LEVELS: dict[str, str] = {
    "minimal": "Do not add explanations beyond the translation itself.",
    "moderate": "Add brief bracketed notes for terms or references a modern reader may miss.",
    "extensive": (
        "After the translation, add a short section of notes explaining difficult "
        "terms, idioms and historical references."
    ),
}


def language_name(code: str) -> str:
    """Return the display name for a language code, English when unknown."""
    return SUPPORTED_LANGUAGES.get(code, "English")


def translation_style(literal_to_poetic: float) -> str:
    """Describe the translation style for a 0 (literal) to 1 (poetic) setting."""
    if literal_to_poetic <= 0.25:
        return (
            "Translate as literally as possible, keeping the original word order "
            "and structure where the target language allows."
        )
    if literal_to_poetic <= 0.5:
        return (
            "Translate faithfully, staying close to the original wording "
            "while reading naturally."
        )
    if literal_to_poetic <= 0.75:
        return (
            "Translate idiomatically, favoring natural phrasing over "
            "word-for-word accuracy."
        )
    return (
        "Translate freely and poetically, capturing the spirit, rhythm and "
        "imagery of the original."
    )


def build_translation_prompt(
    source: str,
    metadata: DocumentMetadata | None,
    *,
    target_language: str = "en",
    translation_scope: str = "all",
    explanation_level: str = "minimal",
    literal_to_poetic: float = 0.5,
    preserve_line_breaks: bool = True,
    include_alternatives: bool = False,
    is_continuation: bool = False,
    continuation_context: str = "",
) -> str:
    """Build the translation prompt.

    Emoji and LLMese targets get their own playful prompts. Translating
    into English when the source language is not recorded is treated as
    modernizing an English text.
    """
    metadata = metadata or DocumentMetadata()
    target = language_name(target_language)

    if target_language == "emoji":
        return (
            "Retell the following text using only emoji and simple ASCII art. Keep the "
            "order of events and ideas, one line per sentence of the original.\n\n"
            f"TEXT:\n{source}"
        )
    if target_language == "llmese":
        return (
            "Rewrite the following text in LLMese: the over-eager, hedging, bullet-pointed "
            'register of a chatbot ("Great question!", "It\'s important to note...", '
            '"delve", "tapestry"). Keep every idea of the original.\n\n'
            f"TEXT:\n{source}"
        )

    source_language = str((metadata.model_extra or {}).get("language") or "")
    modernizing = target_language == "en" and not source_language

    if modernizing:
        header = (
            "Modernize the following historical English text into clear, contemporary "
            "English while preserving its meaning and voice."
        )
    else:
        header = f"Translate the following text into {target}."

    instructions = [
        translation_style(literal_to_poetic),
        _EXPLANATION_LEVELS.get(explanation_level, _EXPLANATION_LEVELS["minimal"]),
    ]
    if translation_scope and translation_scope != "all":
        instructions.append(f"Translate only this part of the text: {translation_scope}.")
    if preserve_line_breaks:
        instructions.append("Preserve the original line breaks and paragraph structure.")
    if include_alternatives:
        instructions.append(
            "For ambiguous words or phrases, give alternative renderings in brackets."
        )
    instructions.append("Return only the translation and any requested notes.")
    numbered = "\n".join(f"{i}. {line}" for i, line in enumerate(instructions, 1))

    context_lines = [
        f"Author: {metadata.author or 'Unknown'}",
        f"Date: {metadata.date or 'Unknown'}",
    ]
    if metadata.title:
        context_lines.append(f"Title: {metadata.title}")
    if source_language:
        context_lines.append(f"Original language: {source_language}")

    continuation = ""
    if is_continuation:
        continuation = (
            "\nThis text continues a longer document that is being translated in parts. "
            "Keep terminology and style consistent with the earlier parts and do not "
            "repeat them."
        )
        if continuation_context:
            continuation += f"\nEarlier context: {continuation_context}"
        continuation += "\n"

    return f"""{header}
{continuation}
HISTORICAL CONTEXT:
{chr(10).join(context_lines)}

INSTRUCTIONS:
{numbered}

TEXT:
{source}
"""


_HIGHLIGHT_TEMPLATE = """Find the {count} passages of the text below that best match this query.

QUERY: {query}

Each passage must be copied EXACTLY from the text, character for character, so it can be located again. Prefer complete sentences. Score each passage from 0 to 1 for how well it matches.

Respond ONLY with a JSON object of this shape:
{{"segments": [{{"text": "exact passage", "startIndex": 0, "endIndex": 0, "score": 0.9, "explanation": "why it matches"}}]}}

TEXT:
{content}
"""


def build_highlight_prompt(content: str, query: str, num_segments: int = 5) -> str:
    """Build the passage highlighting prompt."""
    return _HIGHLIGHT_TEMPLATE.format(count=num_segments, query=query, content=content)
