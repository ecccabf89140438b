"""
Mock Card Generator.

Keyword-matched, pre-written cards used when no provider produced a usable
answer. Pure function of the question: no I/O, no randomness.
"""

from __future__ import annotations

from .models import TITLE_MAX_CHARS, CardSource, KnowledgeCard, Point
from .normalizer import DEFAULT_TITLE_EMOJI, with_emoji

TEMPLATES: dict[str, dict] = {
    "恐龙": {
        "title": "🦕 恐龙的神秘世界",
        "introduction": "小朋友，恐龙是地球上曾经生活过的神奇生物！让我们一起探索它们的秘密吧！",
        "points": [
            ("🌍 恐龙的时代", "恐龙生活在很久很久以前，大约2.3亿年前到6500万年前。那时候地球的样子和现在很不一样呢！"),
            ("🦴 恐龙的种类", "恐龙有很多种类，有吃植物的温和恐龙，也有吃肉的凶猛恐龙。最大的恐龙比现在的大象还要大很多倍！"),
            ("🔍 恐龙的消失", "科学家认为，可能是因为一颗巨大的陨石撞击地球，改变了环境，恐龙就慢慢消失了。"),
        ],
        "summary": "💡 虽然恐龙消失了，但通过化石，我们仍然可以了解这些神奇的生物！",
    },
    "太阳系": {
        "title": "🪐 太阳系的奇妙之旅",
        "introduction": "小朋友，太阳系是我们地球的家！让我们一起去看看太阳系里都有什么吧！",
        "points": [
            ("☀️ 我们的恒星", "太阳是太阳系的中心，它非常非常大，能发出光和热。没有太阳，地球上就不会有生命！"),
            ("🌍 八大行星", "太阳系有八颗行星：水星、金星、地球、火星、木星、土星、天王星、海王星。地球是我们的家！"),
            ("🌙 月亮和其他", "除了行星，太阳系还有很多月亮、小行星和彗星。月亮是地球的好朋友，每天晚上陪伴着我们！"),
        ],
        "summary": "💡 太阳系就像一个大家庭，每个成员都有自己的特点和作用！",
    },
    "彩虹": {
        "title": "🌈 彩虹的美丽秘密",
        "introduction": "小朋友，你见过雨后的彩虹吗？让我们一起了解彩虹是怎么形成的吧！",
        "points": [
            ("💧 阳光和水滴", "彩虹需要两个好朋友：阳光和小水滴。当阳光照射到空气中的小水滴时，就可能出现彩虹！"),
            ("🎨 七种颜色", "彩虹有七种美丽的颜色：红、橙、黄、绿、蓝、靛、紫。这些颜色按顺序排列，非常漂亮！"),
            ("🔬 光的分解", "其实白色的阳光里包含了所有颜色！当光线通过水滴时，就像通过三棱镜一样，把颜色分开了。"),
        ],
        "summary": "💡 彩虹是大自然送给我们的美丽礼物，提醒我们世界充满了奇妙的科学！",
    },
    "月亮": {
        "title": "🌙 月亮的小秘密",
        "introduction": "小朋友，每天晚上抬头看，月亮都在陪着我们！让我们一起认识它吧！",
        "points": [
            ("🌕 月亮会变脸", "月亮自己不会发光，它反射的是太阳的光。月亮绕着地球转，我们看到被照亮的部分不一样，就有了圆月和弯月。"),
            ("👣 月球表面", "月球上没有空气和水，表面有很多大大小小的坑，叫做环形山。宇航员曾经登上月球，留下了脚印！"),
            ("🌊 月亮和大海", "月亮的引力会拉动地球上的海水，让海水一天涨落两次，这就是潮汐。"),
        ],
        "summary": "💡 月亮是地球的好伙伴，晚上记得和它打个招呼！",
    },
    "火山": {
        "title": "🌋 火山为什么会喷发",
        "introduction": "小朋友，火山就像会打喷嚏的大山！让我们一起看看它的肚子里有什么吧！",
        "points": [
            ("🔥 地下的岩浆", "在地球深处非常非常热，石头都被熔化成了滚烫的岩浆。岩浆比周围的石头轻，会慢慢往上挤。"),
            ("💨 压力变大", "岩浆里藏着很多气体，就像摇过的汽水瓶。压力越来越大，终于冲破地面，火山就喷发了！"),
            ("🏝️ 火山的礼物", "火山灰会让土地变得肥沃，很多美丽的岛屿，比如夏威夷，都是火山喷发形成的。"),
        ],
        "summary": "💡 火山虽然厉害，但它也在悄悄地塑造我们的地球！",
    },
}

GENERIC_INTRODUCTION = "小朋友，这是一个很棒的问题！让我来为你解答吧！"
GENERIC_POINTS = (
    ("📚 基础认识", "首先，我们来了解一下这个问题的基本概念。每个新知识都有它有趣的地方！"),
    ("🔍 深入探索", "接下来，让我们更深入地了解这个话题。科学家们通过研究发现了很多有趣的事实！"),
    ("🎯 生活应用", "这些知识在我们的日常生活中也有很多应用，让我们的生活变得更美好！"),
)
GENERIC_SUMMARY = "💡 学习新知识让我们变得更聪明，保持好奇心最重要！"


def _build(template: dict) -> KnowledgeCard:
    return KnowledgeCard(
        title=template["title"],
        introduction=template["introduction"],
        points=tuple(Point(title=t, content=c) for t, c in template["points"]),
        summary=template["summary"],
        source=CardSource.MOCK,
    )


def generate_mock_card(question: str) -> KnowledgeCard:
    """Return the template card whose keyword occurs in ``question``, or the generic card."""
    lowered = question.lower()
    for keyword, template in TEMPLATES.items():
        if keyword in lowered:
            return _build(template)

    return _build(
        {
            "title": with_emoji(
                f"{DEFAULT_TITLE_EMOJI} 关于“{question}”的知识",
                DEFAULT_TITLE_EMOJI,
                TITLE_MAX_CHARS,
            ),
            "introduction": GENERIC_INTRODUCTION,
            "points": GENERIC_POINTS,
            "summary": GENERIC_SUMMARY,
        }
    )


class MockCardGenerator:
    """Object wrapper so the generator can be injected like the providers."""

    def generate(self, question: str) -> KnowledgeCard:
        return generate_mock_card(question)
