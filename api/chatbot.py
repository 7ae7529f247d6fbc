"""
Rule-based library assistant.

Replies are chosen by case-insensitive substring matching in a fixed order.
English keywords always apply; Uzbek and Russian keywords only apply when
the request names that language.
"""

from typing import Dict, Sequence, Tuple

DEFAULT_LANGUAGE = "en"

RESPONSES: Dict[str, Dict[str, str]] = {
    "en": {
        "book_search": "You can search for books using the search bar on the Books page. You can filter by title, author, or category.",
        "book_borrow": "Currently, our digital library allows you to read books online. Physical borrowing will be available soon!",
        "book_upload": "To upload a book, you need admin privileges. Please contact the library administrator.",
        "book_general": "We have a wide collection of books available. You can browse them on the Books page or use the search function.",
        "event_upcoming": "You can view all upcoming events on the Events page. New events are added regularly!",
        "event_register": "To register for events, please visit the Events page and click on the event you're interested in.",
        "event_general": "We host various events including book clubs, author talks, and workshops. Check the Events page for details.",
        "hours": "Our digital library is available 24/7! For physical library hours, please contact the administration.",
        "help": "I'm here to help! You can ask me about books, events, library services, or general questions.",
        "hello": "Hello! I'm your library assistant. How can I help you today?",
        "register": "To access all features and save your reading history, please register for a free account. Click 'Sign Up' in the top menu!",
        "login": "You can log in using your email and password. If you don't have an account, please sign up first!",
        "default": "I'm not sure about that. You can ask me about books, events, library services, or browse our website for more information.",
    },
    "uz": {
        "book_search": "Kitoblarni qidirish uchun Kitoblar sahifasidagi qidiruv panelidan foydalanishingiz mumkin. Sarlavha, muallif yoki kategoriya bo'yicha filtrlashingiz mumkin.",
        "book_borrow": "Hozirda bizning raqamli kutubxonamiz kitoblarni onlayn o'qish imkonini beradi. Jismoniy o'qish tez orada mavjud bo'ladi!",
        "book_upload": "Kitob yuklash uchun administrator huquqlari kerak. Iltimos, kutubxona ma'muriga murojaat qiling.",
        "book_general": "Bizda keng kitoblar to'plami mavjud. Ularni Kitoblar sahifasida ko'rib chiqishingiz yoki qidiruv funksiyasidan foydalanishingiz mumkin.",
        "event_upcoming": "Barcha kelgusi tadbirlarni Tadbirlar sahifasida ko'rishingiz mumkin. Yangi tadbirlar muntazam qo'shiladi!",
        "event_register": "Tadbirlarga ro'yxatdan o'tish uchun Tadbirlar sahifasiga tashrif buyuring va sizni qiziqtirgan tadbirni bosing.",
        "event_general": "Biz turli xil tadbirlarni o'tkazamiz, jumladan kitob klublari, mualliflar bilan suhbatlar va ustaxonalar. Batafsil ma'lumot uchun Tadbirlar sahifasini tekshiring.",
        "hours": "Bizning raqamli kutubxonamiz 24/7 mavjud! Jismoniy kutubxona soatlarini bilish uchun ma'muriyat bilan bog'laning.",
        "help": "Men yordam berish uchun tayyorman! Menga kitoblar, tadbirlar, kutubxona xizmatlari yoki umumiy savollar haqida so'rashingiz mumkin.",
        "hello": "Salom! Men sizning kutubxona yordamchisiman. Bugun sizga qanday yordam bera olaman?",
        "register": "Barcha funksiyalarga kirish va o'qish tarixingizni saqlash uchun bepul hisob yarating. Yuqori menyudagi 'Ro'yxatdan o'tish' tugmasini bosing!",
        "login": "Elektron pochta va parolingiz bilan tizimga kirishingiz mumkin. Agar hisobingiz yo'q bo'lsa, avval ro'yxatdan o'ting!",
        "default": "Men bu haqda aniq emasman. Menga kitoblar, tadbirlar, kutubxona xizmatlari haqida so'rashingiz yoki veb-saytimizda ko'rib chiqishingiz mumkin.",
    },
    "ru": {
        "book_search": "Вы можете искать книги, используя панель поиска на странице Книги. Вы можете фильтровать по названию, автору или категории.",
        "book_borrow": "В настоящее время наша цифровая библиотека позволяет читать книги онлайн. Физическое заимствование будет доступно в ближайшее время!",
        "book_upload": "Для загрузки книги нужны права администратора. Пожалуйста, обратитесь к администратору библиотеки.",
        "book_general": "У нас есть большая коллекция книг. Вы можете просматривать их на странице Книги или использовать функцию поиска.",
        "event_upcoming": "Вы можете просмотреть все предстоящие мероприятия на странице События. Новые события добавляются регулярно!",
        "event_register": "Для регистрации на мероприятия посетите страницу События и нажмите на интересующее вас событие.",
        "event_general": "Мы проводим различные мероприятия, включая книжные клубы, встречи с авторами и мастер-классы. Подробности смотрите на странице События.",
        "hours": "Наша цифровая библиотека доступна 24/7! Для получения информации о часах работы физической библиотеки обратитесь к администрации.",
        "help": "Я здесь, чтобы помочь! Вы можете спросить меня о книгах, событиях, услугах библиотеки или общих вопросах.",
        "hello": "Привет! Я ваш помощник библиотеки. Как я могу помочь вам сегодня?",
        "register": "Для доступа ко всем функциям и сохранения истории чтения, пожалуйста, зарегистрируйтесь для бесплатного аккаунта. Нажмите 'Регистрация' в верхнем меню!",
        "login": "Вы можете войти, используя свой email и пароль. Если у вас нет аккаунта, пожалуйста, сначала зарегистрируйтесь!",
        "default": "Я не уверен в этом. Вы можете спросить меня о книгах, событиях, услугах библиотеки или просмотреть наш веб-сайт для получения дополнительной информации.",
    },
}

# intent -> (english keywords, {language: localized keywords})
KEYWORDS: Dict[str, Tuple[Sequence[str], Dict[str, Sequence[str]]]] = {
    "register": (("register", "signup", "sign up"), {"uz": ("ro'yxat",), "ru": ("регистрация",)}),
    "login": (("login", "signin", "sign in"), {"uz": ("kirish",), "ru": ("вход",)}),
    "book": (("book", "read"), {"uz": ("kitob", "o'qish"), "ru": ("книга", "читать")}),
    "book_search": (("find", "search"), {"uz": ("qidirish",), "ru": ("найти",)}),
    "book_borrow": (("borrow", "checkout"), {"uz": ("olish",), "ru": ("взять",)}),
    "book_upload": (("upload", "add"), {"uz": ("yuklash",), "ru": ("загрузить",)}),
    "event": (("event", "activity"), {"uz": ("tadbir",), "ru": ("событие",)}),
    "event_upcoming": (("upcoming", "schedule"), {"uz": ("kelgusi",), "ru": ("предстоящий",)}),
    "event_register": (("register", "join"), {"uz": ("ro'yxat",), "ru": ("зарегистрироваться",)}),
    "hours": (("hours", "open"), {"uz": ("soat",), "ru": ("часы",)}),
    "help": (("help", "support"), {"uz": ("yordam",), "ru": ("помощь",)}),
    "hello": (("hello", "hi"), {"uz": ("salom",), "ru": ("привет",)}),
}

BOOK_TOPICS = ("book_search", "book_borrow", "book_upload")
EVENT_TOPICS = ("event_upcoming", "event_register")
GENERAL_TOPICS = ("hours", "help", "hello")


def _mentions(text: str, intent: str, language: str) -> bool:
    english, localized = KEYWORDS[intent]
    keywords = tuple(english) + tuple(localized.get(language, ()))
    return any(keyword in text for keyword in keywords)


def detect_intent(message: str, language: str = DEFAULT_LANGUAGE) -> str:
    """
    Map a message to a response key.

    Args:
        message: User message
        language: Requested language code

    Returns:
        Key into the language's response table
    """
    text = message.lower()

    for intent in ("register", "login"):
        if _mentions(text, intent, language):
            return intent

    if _mentions(text, "book", language):
        for topic in BOOK_TOPICS:
            if _mentions(text, topic, language):
                return topic
        return "book_general"

    if _mentions(text, "event", language):
        for topic in EVENT_TOPICS:
            if _mentions(text, topic, language):
                return topic
        return "event_general"

    for intent in GENERAL_TOPICS:
        if _mentions(text, intent, language):
            return intent

    return "default"


def generate_response(message: str, language: str = DEFAULT_LANGUAGE) -> str:
    """Reply to ``message`` in ``language``, falling back to English templates."""
    templates = RESPONSES.get(language, RESPONSES[DEFAULT_LANGUAGE])
    return templates[detect_intent(message, language)]
