"""User-facing message catalog (Russian)."""

from __future__ import annotations

from html import escape

# ── Sign-in ──────────────────────────────────────────────────────────

AUTH_START_INSTRUCTIONS = "Для регистрации в системе введите ваш телефон в формате +79991234567"
PHONE_INVALID = "Введите номер в формате 79991234567"
PHONE_NOT_FOUND = "Такого телефона нет в базе. Обратитесь к управляющему."
FULLNAME_NOT_FOUND = "Имя не найдено среди сотрудников с этим телефоном. Проверьте написание и попробуйте снова."
CODE_INVALID = "Введите 4 цифры кода"
STAFF_NOT_FOUND = "Произошла ошибка: не найден сотрудник. Начните заново с /auth_start"
REGISTRATION_FAILED = "Произошла ошибка при сохранении данных. Попробуйте позже."
SESSION_NOT_FOUND = "Нет активной сессии аутентификации. Начните с /auth_start"
STEP_MISMATCH = "Сейчас нельзя запросить новый код. Следуйте инструкциям."
SMS_SEND_ERROR = "Не удалось отправить код подтверждения. Попробуйте позже."
TEXT_REQUIRED = "Пожалуйста, отправьте ответ текстом."

CONTACT_CONFIRM_YES = "Да"
CONTACT_CONFIRM_NO = "Нет"
SHARE_CONTACT_BUTTON = "Авторизация"


def contact_confirm(phone: str) -> str:
    return f"Это твой номер телефона: <b>{escape(phone)}</b>?"


def sms_sent(phone: str, cooldown_minutes: int) -> str:
    return f"Код отправлен на {phone}. Введите 4 цифры. Повторно запросить код можно через {cooldown_minutes} мин."


def new_sms_sent(phone: str, cooldown_minutes: int) -> str:
    return f"Новый код отправлен на {phone}. Введите 4 цифры. Повторно запросить код можно через {cooldown_minutes} мин."


def sms_cooldown(minutes_left: int) -> str:
    return f"Код уже был отправлен. Повторно можно запросить через {minutes_left} мин."


def resend_spam_limit(minutes_left: int) -> str:
    return f"Слишком частые запросы. Повторить запрос кода можно через {minutes_left} мин."


def auth_start_cooldown(minutes_left: int) -> str:
    return (
        "Вы недавно запрашивали код подтверждения. "
        f"Повторно начать авторизацию можно через {minutes_left} мин."
    )


def fullname_prompt(names: list[str]) -> str:
    return f"Найден(ы) сотрудник(ы): {', '.join(names)}.\nУкажите ваше полное имя (ФИО) точно как в системе."


def already_registered(first_name: str, last_name: str) -> str:
    return f"Этот номер уже привязан к учётной записи {first_name} {last_name}."


def attempt_failed(remaining: int) -> str:
    return f"Неверный код. Осталось попыток: {remaining}. Введите 4 цифры."


def attempts_exceeded(max_attempts: int) -> str:
    return f"Вы использовали все {max_attempts} попыток. Регистрация отменена. Начните заново с /auth_start"


def success_auth(last_name: str, first_name: str) -> str:
    return f"Успешно! {last_name} {first_name} успешно авторизован.\nДля запуска введите команду /start"


# ── Courier problem orders ───────────────────────────────────────────

PHOTO_QUESTION = "Ответ принят. Будете прикладывать фотодоказательства?"
REPLY_FIRST = "Сначала напишите текстовый ответ по заказу."
COURIER_FINISHED = "Спасибо за информацию. Диалог завершён."
ORDER_NOT_FOUND = "Ошибка: не найден заказ для обработки. Пожалуйста, начните диалог заново."
PHOTO_YES = "Да"
PHOTO_NO = "Нет"
PHOTO_DONE = "Готово"


def courier_reply_prompt(max_length: int) -> str:
    return f"Напишите текстом ваш ответ (максимум {max_length} символов)"


def photo_required(max_photos: int) -> str:
    return f"Пожалуйста, отправьте фотографии (до {max_photos} штук) или нажмите «Готово»."


def reply_rejected(max_length: int) -> str:
    return f"<b>Ответ не записан.</b> Принимается только текст (максимум {max_length} символов)"


def photo_prompt(max_photos: int) -> str:
    return f"Пожалуйста, загрузите до {max_photos} фотографий."


def photo_received(count: int, max_photos: int) -> str:
    return f"Фото принято ({count} из {max_photos}). Отправьте ещё или нажмите «Готово»."


def photos_saved(uploaded: int, total: int) -> str:
    return f"Фотографии сохранены (загружено {uploaded} из {total}). Спасибо за информацию. Диалог завершён."


# ── Group chat set-up ────────────────────────────────────────────────

NO_UNITS = "У вас нет подразделений без чата по сырью."
CHOOSE_UNIT = "Выберите подразделение:"
UNIT_NOT_AVAILABLE = "Это подразделение недоступно. Начните заново: /init_chat"
INIT_CHAT_EXPIRED = "Сессия настройки чата истекла. Начните заново: /init_chat"
INIT_CHAT_USE_BUTTONS = "Используйте кнопки под сообщением или /cancel для отмены."
INIT_CHAT_FAILED = "Не удалось обработать добавление бота. Попробуйте ещё раз."
CHAT_BIND_FAILED = "Не удалось сохранить чат для подразделения. Начните заново: /init_chat"
CHAT_CONFIRM_OK = "OK"
CHAT_CONFIRM_RETRY = "Проблема"


def add_bot_to_chat(unit_name: str) -> str:
    return (
        f"Создайте чат по сырью для <b>{escape(unit_name)}</b>.\n\n"
        "Потом добавьте меня в него и сделайте администратором."
    )


def chat_check(unit_name: str) -> str:
    return (
        f"Проверка инициализации чата управления сырьём в пиццерии <b>{escape(unit_name)}</b>. "
        "Перейдите в личные сообщения для завершения инициализации"
    )


def chat_check_confirm(unit_name: str) -> str:
    return (
        "Если в групповом чате вышло сообщение\n"
        f"Проверка инициализации чата управления сырьём в пиццерии <b>{escape(unit_name)}</b>\n\n"
        "Это значит всё в порядке, жмите OK для завершения инициализации"
    )


def chat_initialized(unit_name: str) -> str:
    return f"Чат для {unit_name} успешно инициализирован! Теперь я буду отправлять туда уведомления о низких остатках."


# ── General ──────────────────────────────────────────────────────────

WELCOME = "Привет, я бот DodoPizza.\nДавайте вначале проверим регистрацию вашего аккаунта в системе."
DIALOG_CANCELLED = "Диалог отменён."
NOTHING_TO_CANCEL = "Нет активного диалога."
GENERIC_ERROR = "Произошла ошибка, попробуйте позже"
REPLY_FALLBACK = "Произошла ошибка. Попробуйте позже."


def step_blocked(step_description: str) -> str:
    return (
        "⏸️ Сейчас идёт активный диалог. Сначала завершите текущий шаг:\n\n"
        f"{step_description}\n\n"
        "Используйте /cancel для отмены диалога."
    )


def bot_added(chat_id: int, bot_name: str) -> str:
    return f"chatID: {chat_id}.\nУкажите его в настройках {bot_name}"


# ── Menu ─────────────────────────────────────────────────────────────

ACCESS_RESTRICTED = "Доступ ограничен: ваша учётная запись неактивна. Обратитесь к управляющему."
HELP = (
    "Доступные команды:\n"
    "/start - главное меню\n"
    "/auth_start - авторизация по номеру телефона\n"
    "/resend_code - повторно отправить код\n"
    "/init_chat - подключить чат по сырью для подразделения\n"
    "/cancel - отменить текущий диалог\n"
    "/get_my_id - показать ваш ID"
)

ROLE_NAMES = {
    "Courier": "Курьер",
    "Cashier": "Кассир",
    "KitchenMember": "Сотрудник кухни",
    "Manager": "Менеджер",
}


def greeting(first_name: str, staff_type: str) -> str:
    return f"Здравствуйте, {first_name}!\nВаша роль: {ROLE_NAMES.get(staff_type, staff_type)}"


def my_id(user_id: int) -> str:
    return f"Ваш ID: {user_id}"
