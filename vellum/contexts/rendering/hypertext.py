"""
LaTeX to HTML conversion for the fallback renderer.

A best-effort structural translation, not a LaTeX parser. The source is run
through ordered lists of regex rules:

1. STRUCTURE_RULES: line breaks, escaped characters, alignment tabs
2. INLINE_RULES: text formatting, links, skill chips (repeated until stable so
   nested wrappers such as \\textbf{\\textit{x}} resolve from the inside out)
3. BLOCK_RULES: headings, alignment environments, lists, spacing
4. CLEANUP_RULES: unknown commands are unwrapped ({arg} kept) or dropped

Anything the rules do not recognise degrades to plain text. The result is
placed in an HTML page with an embedded resume stylesheet
(templates/document.html.jinja).
"""

import html
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_PATH = Path(__file__).parent / "templates"
DOCUMENT_TEMPLATE = "document.html.jinja"

# Safety bound for rules applied until stable (nesting depth of brace groups)
MAX_REPEAT_PASSES = 8

BEGIN_DOCUMENT = r"\begin{document}"
END_DOCUMENT = r"\end{document}"

# Innermost brace group content
_ARG = r"([^{}]*)"


@dataclass(frozen=True)
class HypertextRule:
    """
    One pattern -> replacement step.

    Attributes:
        name: Rule identifier (for debugging and tests)
        pattern: Regular expression
        replacement: re.sub replacement string
        flags: re flags
        count: Maximum substitutions (0 = all)
    """

    name: str
    pattern: str
    replacement: str
    flags: int = 0
    count: int = 0

    def apply(self, text: str) -> str:
        return re.sub(self.pattern, self.replacement, text, count=self.count, flags=self.flags)


STRUCTURE_RULES = (
    HypertextRule("line_break", r"\\\\(?:\*)?(?:\[[^\]]*\])?|\\newline\b", "<br>"),
    HypertextRule("escaped_ampersand", r"\\&amp;", "&#38;"),
    HypertextRule("alignment_tab", r"&amp;", " &emsp; "),
    HypertextRule("escaped_percent", r"\\%", "%"),
    HypertextRule("escaped_dollar", r"\\\$", "$"),
    HypertextRule("escaped_underscore", r"\\_", "_"),
    HypertextRule("escaped_hash", r"\\#", "#"),
    HypertextRule("escaped_open_brace", r"\\\{", "&#123;"),
    HypertextRule("escaped_close_brace", r"\\\}", "&#125;"),
    HypertextRule("em_dash", r"---", "&mdash;"),
    HypertextRule("en_dash", r"--", "&ndash;"),
    HypertextRule("open_quotes", r"``", "&ldquo;"),
    HypertextRule("close_quotes", r"&#x27;&#x27;", "&rdquo;"),
    HypertextRule("non_breaking_space", r"(?<!\\)~", "&nbsp;"),
    HypertextRule("thin_spaces", r"\\[,;:! ]", " "),
)

INLINE_RULES = (
    HypertextRule("bold", r"\\textbf\{" + _ARG + r"\}", r"<strong>\1</strong>"),
    HypertextRule("bold_group", r"\{\\bfseries\s*" + _ARG + r"\}", r"<strong>\1</strong>"),
    HypertextRule("italic", r"\\(?:textit|emph|textsl)\{" + _ARG + r"\}", r"<em>\1</em>"),
    HypertextRule("italic_group", r"\{\\(?:itshape|em)\s+" + _ARG + r"\}", r"<em>\1</em>"),
    HypertextRule("underline", r"\\underline\{" + _ARG + r"\}", r"<u>\1</u>"),
    HypertextRule("monospace", r"\\texttt\{" + _ARG + r"\}", r"<code>\1</code>"),
    HypertextRule("small_caps", r"\\textsc\{" + _ARG + r"\}", r'<span class="small-caps">\1</span>'),
    HypertextRule("hyperlink", r"\\href\{" + _ARG + r"\}\{" + _ARG + r"\}", r'<a href="\1">\2</a>'),
    HypertextRule("url", r"\\url\{" + _ARG + r"\}", r'<a href="\1">\1</a>'),
    HypertextRule("skill_chip", r"\\(?:skill|cvtag|tag)\{" + _ARG + r"\}", r'<span class="skill">\1</span>'),
    HypertextRule("colored_text", r"\\textcolor\{[^{}]*\}\{" + _ARG + r"\}", r"\1"),
    HypertextRule("name_command", r"\\name\{" + _ARG + r"\}", r"<h1>\1</h1>"),
    HypertextRule("huge_text", r"\{\\(?:Huge|huge|LARGE)\s*" + _ARG + r"\}", r"<h1>\1</h1>"),
    HypertextRule("large_text", r"\{\\(?:Large|large)\s*" + _ARG + r"\}", r'<span class="large">\1</span>'),
    HypertextRule("small_text", r"\{\\(?:small|footnotesize|scriptsize)\s*" + _ARG + r"\}", r'<span class="small">\1</span>'),
)

BLOCK_RULES = (
    HypertextRule("section", r"\\section\*?\{" + _ARG + r"\}", r"<h2>\1</h2>"),
    HypertextRule("subsection", r"\\subsection\*?\{" + _ARG + r"\}", r"<h3>\1</h3>"),
    HypertextRule("subsubsection", r"\\subsubsection\*?\{" + _ARG + r"\}", r"<h4>\1</h4>"),
    HypertextRule("begin_center", r"\\begin\{center\}", '<div class="center">'),
    HypertextRule("contact_block", r'<div class="center">', '<div class="center contact-info">', count=1),
    HypertextRule("begin_flushleft", r"\\begin\{flushleft\}", '<div class="left">'),
    HypertextRule("begin_flushright", r"\\begin\{flushright\}", '<div class="right">'),
    HypertextRule("end_alignment", r"\\end\{(?:center|flushleft|flushright)\}", "</div>"),
    HypertextRule("begin_itemize", r"\\begin\{itemize\}(?:\[[^\]]*\])?", "<ul>"),
    HypertextRule("end_itemize", r"\\end\{itemize\}", "</ul>"),
    HypertextRule("begin_enumerate", r"\\begin\{enumerate\}(?:\[[^\]]*\])?", "<ol>"),
    HypertextRule("end_enumerate", r"\\end\{enumerate\}", "</ol>"),
    HypertextRule("list_item", r"\\item\b(?:\[[^\]]*\])?\s*", "<li>"),
    HypertextRule(
        "vertical_space",
        r"\\vspace\*?\{\s*(-?[0-9.]+\s*(?:pt|em|ex|mm|cm|in|px))\s*\}",
        r'<div style="margin-top: \1;"></div>',
    ),
    HypertextRule("horizontal_space", r"\\hspace\*?\{[^{}]*\}", " "),
    HypertextRule(
        "layout_commands",
        r"\\(?:vspace|setlength|addtolength|setcounter|pagestyle|thispagestyle)\*?(?:\{[^{}]*\})+",
        "",
    ),
    HypertextRule("horizontal_fill", r"\\hfill\b", '<span class="hfill"></span>'),
    HypertextRule("horizontal_rule", r"\\(?:hrule|rule\{[^{}]*\}\{[^{}]*\})", "<hr>"),
    HypertextRule("page_break", r"\\(?:newpage|clearpage|pagebreak)\b", '<div class="page-break"></div>'),
    HypertextRule("paragraph", r"\n[ \t]*\n(?:[ \t]*\n)*", '\n<div class="paragraph-break"></div>\n'),
)

CLEANUP_RULES = (
    HypertextRule(
        "other_environments",
        r"\\(?:begin|end)\{[^{}]*\}(?:\[[^\]]*\]|\{[^{}]*\})*",
        "",
    ),
    HypertextRule("unwrap_command", r"\\[A-Za-z]+\*?(?:\[[^\]]*\])?\{" + _ARG + r"\}", r"\1"),
    HypertextRule("drop_command", r"\\[A-Za-z]+\*?(?:\[[^\]]*\])?", ""),
    HypertextRule("drop_braces", r"[{}]", ""),
)

# Full ordered rule list, for inspection; to_hypertext applies the groups above
CONVERSION_RULES = STRUCTURE_RULES + INLINE_RULES + BLOCK_RULES + CLEANUP_RULES

_COMMENT_PATTERN = re.compile(r"(?<!\\)%.*$", re.MULTILINE)
_HEADING_PATTERN = re.compile(r"<h1>(.*?)</h1>", re.DOTALL)
_TAG_PATTERN = re.compile(r"<[^>]+>")

_environment = Environment(
    loader=FileSystemLoader(str(TEMPLATES_PATH)),
    autoescape=select_autoescape(enabled_extensions=("html.jinja",)),
    keep_trailing_newline=True,
)


def apply_rules(text: str, rules: Sequence[HypertextRule], until_stable: bool = False) -> str:
    """
    Apply rules in order, once or repeatedly until the text stops changing.

    Args:
        text: Input text
        rules: Ordered rules
        until_stable: Re-run the whole sequence while it still changes the text

    Returns:
        Transformed text
    """
    passes = MAX_REPEAT_PASSES if until_stable else 1
    for _ in range(passes):
        previous = text
        for rule in rules:
            text = rule.apply(text)
        if text == previous:
            break
    return text


def extract_body(source_text: str) -> str:
    """Return the text between \\begin{document} and \\end{document} (or all of it)."""
    start = source_text.find(BEGIN_DOCUMENT)
    body = source_text[start + len(BEGIN_DOCUMENT) :] if start != -1 else source_text
    end = body.rfind(END_DOCUMENT)
    return body[:end] if end != -1 else body


def strip_comments(latex: str) -> str:
    """Remove % comments, keeping escaped percent signs."""
    return _COMMENT_PATTERN.sub("", latex)


def latex_to_html_body(source_text: str) -> str:
    """
    Convert LaTeX markup to an HTML fragment (no page wrapper).

    Args:
        source_text: LaTeX document or fragment

    Returns:
        HTML fragment
    """
    text = strip_comments(extract_body(source_text))
    text = html.escape(text)
    text = apply_rules(text, STRUCTURE_RULES)
    text = apply_rules(text, INLINE_RULES, until_stable=True)
    text = apply_rules(text, BLOCK_RULES)
    text = apply_rules(text, CLEANUP_RULES, until_stable=True)
    return text.strip()


def _derive_title(body: str) -> Optional[str]:
    match = _HEADING_PATTERN.search(body)
    if not match:
        return None
    title = html.unescape(_TAG_PATTERN.sub("", match.group(1))).strip()
    return title or None


def to_hypertext(source_text: str, title: Optional[str] = None) -> str:
    """
    Convert a LaTeX document to a standalone HTML page for PDF export.

    Deterministic and lossy: headings, bold/italic text, line breaks, alignment
    blocks, lists, and links carry over; unsupported constructs are reduced to
    their text or dropped.

    Args:
        source_text: LaTeX source
        title: Page title (default: first <h1> text, else "Resume")

    Returns:
        Complete HTML document with embedded stylesheet

    Example:
        >>> html_doc = to_hypertext(r"\\section*{Skills} \\textbf{Python}")
        >>> "<h2>Skills</h2>" in html_doc and "<strong>Python</strong>" in html_doc
        True
    """
    body = latex_to_html_body(source_text)
    template = _environment.get_template(DOCUMENT_TEMPLATE)
    return template.render(title=title or _derive_title(body) or "Resume", body=body)
