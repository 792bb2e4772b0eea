"""
Маркеры (regex) для анализаторов текстовых сигналов.

Все паттерны применяются к тексту в нижнем регистре
с флагами IGNORECASE | UNICODE.
"""

from typing import Dict, List, Tuple

# =============================================================================
# ТОН
# =============================================================================

# (паттерн, бонус)
POLITENESS_MARKERS: List[Tuple[str, int]] = [
    (r"(здрав|добрый день|доброе утро|добрый вечер|приветствую|good (morning|afternoon|evening)|\bhello\b)", 2),
    (r"(спасибо|благодарю|пожалуйста|thank you|thanks|\bplease\b)", 1),
    (r"(рад(а)? знакомству|приятно познакомиться|nice to meet you)", 2),
]

PRESSURE_MARKERS: List[Tuple[str, int]] = [
    (r"(срочно|немедленно|давайте быстрее|прямо сейчас|сегодня же|right now|immediately|\basap\b)", -4),
    (r"(или мы уйд[её]м|\bиначе\b|последний шанс|or we walk away|last chance)", -4),
]

# Поддакивание без фактов: «ок, как скажете» + «ищите/подбирайте»
OBSEQUIOUS_AGREEMENT = r"(\bок\b|\bокей\b|да, конечно|что угодно|как скажете)"
OBSEQUIOUS_ACTION = r"(подбор|ищите|занимайтесь)"

COURTESY_MARKER = (
    r"(спасибо|благодарю|пожалуйста|будьте добры|извините|прошу прощения"
    r"|thank|\bplease\b|\bsorry\b)"
)

# =============================================================================
# СРОКИ
# =============================================================================

TIMELINE_DOCS = r"(документ|контракт|офер|виза|слот|приглашени|регистрац|\bvisa|permit|registration)"
TIMELINE_FAST = (
    r"\b[1-5]\s*(дн(я|ей|ь)?|day|days|сут\w*|час(а|ов)?|hour|hours)\b"
    r"|48\s*час|48\s*hours|завтра|tomorrow"
)

# =============================================================================
# КОНКРЕТИКА И ДЕЛОВОЙ ФОКУС
# =============================================================================

CONCRETENESS_MARKERS: Dict[str, str] = {
    "number": r"\d",
    "currency": r"(€|\$|\beur\b|евро|\busd\b|zł|злот|\bczk\b|крон)",
    "date": (
        r"(\bянвар|\bфеврал|\bмарт|\bапрел|\bма[йя]\b|\bиюн|\bиюл|\bавгуст|\bсентябр"
        r"|\bоктябр|\bноябр|\bдекабр|\b(19|20)\d\d\b|\bjanuary|\bfebruary|\bmarch\b"
        r"|\bapril|\bjune\b|\bjuly\b|\baugust|\bseptember|\boctober|\bnovember|\bdecember)"
    ),
    "city": (
        r"(прага|праге|praha|prague|брно|brno|острав|ostrava|пльзен|plzeň|plzen"
        r"|варшав|warsaw|warszawa|краков|krak[oó]w|вроцлав|wroc[lł]aw|гданьск|gda[nń]sk"
        r"|познан|pozna[nń]|вильнюс|vilnius|ташкент|tashkent|самарканд)"
    ),
}
CONCRETENESS_CAP = 3

BUSINESS_MARKERS: Dict[str, str] = {
    "vacancy": r"(ваканси|позици|должност|vacanc|position)",
    "salary": r"(зарплат|оклад|ставк|salary|wage)",
    "housing": r"(жиль|общежит|прожива|accommodation|housing)",
    "schedule": r"(график|смен[аыу]|schedule|shift)",
    "location": r"(город|локаци|местоположен|адрес|location|\bcity\b)",
    "contract": r"(контракт|договор|contract)",
}
BUSINESS_CAP = 3

# =============================================================================
# ФЛАГИ
# =============================================================================

# red: каждый флаг — все паттерны из списка должны совпасть
RED_FLAG_MARKERS: Dict[str, List[str]] = {
    "crypto_upfront": [
        r"(\bкрипт|usdt|\bbtc\b|\beth\b|crypto)",
        r"(сразу|предоплат|аванс|upfront|in advance)",
    ],
    "impossible_guarantee": [r"(гарантирую|100\s*%|сто процентов|без отказов|guaranteed)"],
    "pressure": [r"(поторопитесь|только сегодня|срочно платите|hurry up|today only)"],
    "embassy_connections_claim": [
        r"(связи в посольстве|решаем через знакомых|знакомые в посольстве|connections (in|at) the embassy)"
    ],
    # сервисный платёж €350 путают с зарплатой
    "fee_salary_confusion": [r"(зарплат|salary)", r"(€\s*350|350\s*€|\b350\b)"],
    # в деманде нет реквизитов, это концептуальная ошибка
    "requisites_from_demand": [r"реквизит", r"(demand|деманд)"],
}

GREEN_FLAG_MARKERS: Dict[str, str] = {
    "mentions_bank_payment": r"(сч[её]т|инвойс|банковск|invoice|bank transfer)",
    "mentions_website": r"(сайт|website|https?://)",
    "mentions_demand": r"(деманд|demand)",
    "mentions_contract": r"(контракт|офер|соглашени|contract)",
    "test_one_candidate": r"(тест(овый|ового)? кандидат|с одного кандидата|1-?2 кандидат|one test candidate)",
}

GRAY_FLAG_MARKERS: Dict[str, str] = {
    "postpone": r"(позже|вернусь|через неделю|давайте потом|\blater\b)",
}

# =============================================================================
# ЛИЧНЫЕ ВОПРОСЫ
# =============================================================================

PERSONAL_TOPIC = (
    r"(\bжен(а|ат|ой|у)\b|\bмуж\b|\bмужем\b|замуж|\bдет(и|ей|ьми)\b|ребён|ребен|\bсемь(я|и|ей|ю)\b"
    r"|сколько (вам|тебе) лет|ваш возраст|\bхобби|увлека|свободное время|выходные проводите"
    r"|откуда вы родом|\bmarried\b|\bkids\b|\bchildren\b|\bfamily\b|how old|\bhobb)"
)
QUESTION_CUE = r"(\?|\bесть ли\b|\bа у вас\b|\bу вас есть\b|\bdo you\b|\bare you\b|\bhave you\b)"

# =============================================================================
# ТЕМЫ «ПРАВИЛЬНОГО» ДИАЛОГА (микро-кредиты)
# =============================================================================

INFO_TOPIC_MARKERS: Dict[str, str] = {
    "vacancy": r"(ваканси|позици|должност|кем работать|vacanc|position)",
    "salary": r"(зарплат|оклад|сколько платят|ставк|salary)",
    "housing": r"(жиль|общежит|прожива|accommodation|housing)",
    "schedule": r"(график|смен[аыу]|часов|выходн|schedule|hours)",
    "location": r"(где[^.?!]{0,40}(наход|располож|работ)|город|адрес|location|\bcity\b)",
    "documents": r"(документ|деманд|demand|контракт|договор|виз[аы]|разрешени|contract|\bvisa|permit)",
    "website": r"(сайт|website|https?://|www\.)",
}

PAYMENT_MENTION = r"(оплат|плат[её]ж|инвойс|сч[её]т|реквизит|payment|invoice)"
