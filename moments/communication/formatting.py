"""Markdown to Telegram HTML converter.

Telegram supports a limited HTML subset:
  <b>bold</b>, <i>italic</i>, <s>strikethrough</s>,
  <code>inline code</code>, <pre>code block</pre>,
  <a href="url">link</a>, <blockquote>quote</blockquote>

Replies quote the user's moments and show whole day files, so this
module handles fenced code blocks and "> " quotes on top of inline
formatting. Everything else is HTML-escaped.
"""

import re
import html as _html


def _escape(text: str) -> str:
    """Escape HTML special characters in plain text segments."""
    return _html.escape(text, quote=False)


def markdown_to_telegram_html(text: str) -> str:
    """Convert markdown-formatted text to Telegram-safe HTML.

    Handles:
    - ```code blocks``` → <pre>code blocks</pre> (content left verbatim)
    - consecutive "> " lines → <blockquote>...</blockquote>
    - **bold** / __bold__ → <b>bold</b>
    - *italic* / _italic_ → <i>italic</i>
    - `inline code` → <code>inline code</code>
    - [text](url) → <a href="url">text</a>
    - ~~strikethrough~~ → <s>strikethrough</s>
    """
    if not text:
        return text

    result = []
    lines = text.split('\n')
    i = 0

    while i < len(lines):
        line = lines[i]

        # Code block: ```...```
        if line.strip().startswith('```'):
            code_lines = []
            i += 1
            while i < len(lines) and not lines[i].strip().startswith('```'):
                code_lines.append(lines[i])
                i += 1
            if i < len(lines):
                i += 1
            result.append(f'<pre>{_escape(chr(10).join(code_lines))}</pre>')
            continue

        # Blockquote: run of lines starting with ">"
        if line.startswith('>'):
            quoted = []
            while i < len(lines) and lines[i].startswith('>'):
                quoted.append(_format_inline(re.sub(r'^> ?', '', lines[i])))
                i += 1
            result.append('<blockquote>' + '\n'.join(quoted) + '</blockquote>')
            continue

        result.append(_format_inline(line))
        i += 1

    return '\n'.join(result)


def _format_inline(text: str) -> str:
    """Apply inline markdown formatting to a single line."""
    segments = []
    code_pattern = re.compile(r'`([^`]+)`')
    last_end = 0

    # Protect code spans first
    for match in code_pattern.finditer(text):
        if match.start() > last_end:
            segments.append(('text', text[last_end:match.start()]))
        segments.append(('code', match.group(1)))
        last_end = match.end()

    if last_end < len(text):
        segments.append(('text', text[last_end:]))

    parts = []
    for seg_type, seg_text in segments:
        if seg_type == 'code':
            parts.append(f'<code>{_escape(seg_text)}</code>')
        else:
            parts.append(_format_text_segment(seg_text))

    return ''.join(parts)


def _format_text_segment(text: str) -> str:
    """Apply bold, italic, links, strikethrough to a text segment."""
    text = _escape(text)

    # Links: [text](url), before bold/italic
    text = re.sub(
        r'\[([^\]]+)\]\(([^)]+)\)',
        r'<a href="\2">\1</a>',
        text
    )

    text = re.sub(r'\*\*(.+?)\*\*', r'<b>\1</b>', text)
    text = re.sub(r'__(.+?)__', r'<b>\1</b>', text)

    # Italic only at word boundaries (not inside names like file_name)
    text = re.sub(r'(?<!\w)\*([^*]+?)\*(?!\w)', r'<i>\1</i>', text)
    text = re.sub(r'(?<!\w)_([^_]+?)_(?!\w)', r'<i>\1</i>', text)

    text = re.sub(r'~~(.+?)~~', r'<s>\1</s>', text)

    return text
