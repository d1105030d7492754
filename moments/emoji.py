"""Emoji shortcode normalizer.

Rewrites ``:name:`` markers (as typed in chat clients and desktop apps)
to their Unicode form before any other processing. Unknown shortcodes
are left untouched.
"""

import re

EMOJI_SHORTCODES: dict[str, str] = {
    # Smileys & People
    "smile": "😄", "laughing": "😆", "blush": "😊", "smiley": "😃", "relaxed": "☺️",
    "heart_eyes": "😍", "kissing_heart": "😘", "kissing": "😗", "wink": "😉",
    "thinking_face": "🤔", "thinking": "🤔", "neutral_face": "😐", "expressionless": "😑",
    "unamused": "😒", "sweat": "😓", "pensive": "😔", "confused": "😕",
    "upside_down_face": "🙃", "money_mouth_face": "🤑", "astonished": "😲",
    "frowning": "😦", "anguished": "😧", "cry": "😢", "sob": "😭",
    "joy": "😂", "rofl": "🤣", "slightly_smiling_face": "🙂",
    "sunglasses": "😎", "nerd_face": "🤓", "monocle_face": "🧐",
    "worried": "😟", "slightly_frowning_face": "🙁",
    "open_mouth": "😮", "hushed": "😯", "sleepy": "😪", "tired_face": "😫",
    "sleeping": "😴", "relieved": "😌", "stuck_out_tongue": "😛",
    "stuck_out_tongue_winking_eye": "😜", "stuck_out_tongue_closed_eyes": "😝",
    "grimacing": "😬", "zipper_mouth_face": "🤐",
    "nauseated_face": "🤢", "mask": "😷",
    "smiling_imp": "😈", "skull": "💀", "ghost": "👻", "alien": "👽",
    "robot_face": "🤖", "poop": "💩", "clown_face": "🤡",
    "fire": "🔥", "100": "💯", "sparkles": "✨", "star": "⭐", "star2": "🌟",
    "zap": "⚡", "boom": "💥", "collision": "💥",

    # Gestures & Body
    "muscle": "💪", "wave": "👋", "clap": "👏", "thumbsup": "👍", "+1": "👍",
    "thumbsdown": "👎", "-1": "👎", "ok_hand": "👌", "punch": "👊",
    "fist": "✊", "raised_hands": "🙌", "pray": "🙏", "point_up": "☝️",
    "point_up_2": "👆", "point_down": "👇", "point_left": "👈", "point_right": "👉",
    "hand": "✋", "raised_hand": "✋",
    "v": "✌️", "metal": "🤘", "crossed_fingers": "🤞",
    "writing_hand": "✍️", "eyes": "👀", "eye": "👁️", "brain": "🧠",

    # Hearts
    "heart": "❤️", "orange_heart": "🧡", "yellow_heart": "💛",
    "green_heart": "💚", "blue_heart": "💙", "purple_heart": "💜",
    "black_heart": "🖤", "broken_heart": "💔",
    "two_hearts": "💕", "revolving_hearts": "💞", "heartbeat": "💓",
    "sparkling_heart": "💖", "heartpulse": "💗", "cupid": "💘",

    # Objects & Symbols
    "rocket": "🚀", "airplane": "✈️", "tada": "🎉", "party_popper": "🎉",
    "confetti_ball": "🎊", "balloon": "🎈", "gift": "🎁", "trophy": "🏆",
    "medal": "🏅", "crown": "👑", "gem": "💎", "bulb": "💡",
    "wrench": "🔧", "hammer": "🔨", "nut_and_bolt": "🔩",
    "gear": "⚙️", "link": "🔗", "lock": "🔒", "unlock": "🔓",
    "key": "🔑", "bomb": "💣", "pill": "💊",
    "warning": "⚠️", "no_entry": "⛔", "x": "❌", "white_check_mark": "✅",
    "heavy_check_mark": "✔️", "question": "❓", "exclamation": "❗",
    "mega": "📣", "loudspeaker": "📢", "bell": "🔔",
    "bookmark": "🔖", "books": "📚", "book": "📖", "pencil": "📝",
    "pencil2": "✏️", "memo": "📝", "clipboard": "📋",
    "calendar": "📅", "chart_with_upwards_trend": "📈",
    "chart_with_downwards_trend": "📉", "bar_chart": "📊",

    # Tech
    "computer": "💻", "desktop_computer": "🖥️", "keyboard": "⌨️",
    "floppy_disk": "💾", "electric_plug": "🔌", "battery": "🔋", "satellite": "📡",
    "iphone": "📱", "email": "📧", "inbox_tray": "📥",
    "outbox_tray": "📤", "envelope": "✉️", "package": "📦",

    # Nature & Weather
    "sunny": "☀️", "cloud": "☁️", "umbrella": "☂️", "snowflake": "❄️",
    "rainbow": "🌈", "ocean": "🌊", "earth_americas": "🌎",
    "seedling": "🌱", "evergreen_tree": "🌲", "deciduous_tree": "🌳",
    "cactus": "🌵", "fallen_leaf": "🍂", "maple_leaf": "🍁",
    "mushroom": "🍄", "rose": "🌹", "sunflower": "🌻", "blossom": "🌼",

    # Animals
    "dog": "🐶", "cat": "🐱", "bear": "🐻", "panda_face": "🐼",
    "penguin": "🐧", "bird": "🐦", "butterfly": "🦋", "bug": "🐛",
    "bee": "🐝", "turtle": "🐢", "snake": "🐍", "unicorn": "🦄",

    # Food & Drink
    "coffee": "☕", "tea": "🍵", "beer": "🍺", "beers": "🍻",
    "wine_glass": "🍷", "cocktail": "🍸", "pizza": "🍕",
    "hamburger": "🍔", "taco": "🌮", "cookie": "🍪", "cake": "🎂",

    # Arrows & Misc
    "arrow_right": "➡️", "arrow_left": "⬅️", "arrow_up": "⬆️", "arrow_down": "⬇️",
    "arrows_counterclockwise": "🔄", "arrow_forward": "▶️",
    "arrow_backward": "◀️", "infinity": "♾️", "recycle": "♻️",
}

_SHORTCODE_RE = re.compile(r':([a-z0-9_+-]+):')


def convert_shortcodes(text: str) -> str:
    """Replace every known :shortcode: in text with its emoji."""
    if not text:
        return text
    return _SHORTCODE_RE.sub(lambda m: EMOJI_SHORTCODES.get(m.group(1), m.group(0)), text)
