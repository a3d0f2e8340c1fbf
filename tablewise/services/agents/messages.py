"""Localized guest-facing messages.

Templates are plain data keyed by message and language. Adding a language
means adding entries here; `render` falls back to English for any language
a message has no template for.
"""

from typing import Any, Dict

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "ru": "Russian",
    "sr": "Serbian",
    "hu": "Hungarian",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "auto": "English",
}

MESSAGES: Dict[str, Dict[str, str]] = {
    "apology": {
        "en": "I apologize, I'm experiencing technical difficulties. Please try again or rephrase your request.",
        "ru": "Извините, у меня технические трудности. Пожалуйста, попробуйте ещё раз или переформулируйте запрос.",
        "sr": "Izvinjavam se, imam tehničkih poteškoća. Molim pokušajte ponovo ili preformulišite zahtev.",
        "hu": "Elnézést, technikai nehézségeim vannak. Kérlek, próbáld újra vagy fogalmazd át a kérést.",
    },
    "greeting_new": {
        "en": "Hello! I'd love to help you with a reservation today. What date and time work for you, and how many guests?",
        "ru": "Здравствуйте! С удовольствием помогу с бронированием. На какую дату и время, и на сколько человек?",
        "sr": "Zdravo! Rado ću vam pomoći sa rezervacijom. Koji datum i vreme vam odgovara, i za koliko osoba?",
        "hu": "Szia! Szívesen segítek a foglalásban. Milyen dátumra és időpontra, és hány főre?",
        "de": "Hallo! Ich helfe Ihnen gerne bei einer Reservierung. Welches Datum und welche Uhrzeit passen Ihnen, und für wie viele Gäste?",
        "fr": "Bonjour ! Je serais ravie de vous aider à réserver. Quelle date et quelle heure, et pour combien de personnes ?",
        "es": "¡Hola! Me encantaría ayudarte con una reserva. ¿Qué fecha y hora te van bien, y para cuántas personas?",
        "it": "Ciao! Sarò felice di aiutarti con una prenotazione. Che data e ora, e per quante persone?",
        "pt": "Olá! Terei prazer em ajudar com uma reserva. Que data e horário, e para quantas pessoas?",
        "nl": "Hallo! Ik help je graag met een reservering. Welke datum en tijd, en voor hoeveel personen?",
    },
    "greeting_returning": {
        "en": "Hello, {name}! Nice to see you again! I can use your details ({phone}). What date and time would you like?",
        "ru": "Здравствуйте, {name}! Приятно снова вас видеть! Могу использовать ваши данные ({phone}). На какую дату и время?",
        "sr": "Zdravo, {name}! Drago mi je što vas ponovo vidim! Mogu da koristim vaše podatke ({phone}). Koji datum i vreme želite?",
        "hu": "Szia, {name}! Örülök, hogy újra látlak! Használhatom az adataidat ({phone}). Milyen dátumra és időpontra?",
        "de": "Hallo, {name}! Schön, Sie wiederzusehen! Ich kann Ihre Daten verwenden ({phone}). Welches Datum und welche Uhrzeit?",
    },
    "greeting_regular": {
        "en": "Hi {name}! Great to see you again! I can use your usual details ({phone}){party}. What date and time work for you?",
        "ru": "Привет, {name}! Рада снова видеть! Могу использовать ваши обычные данные ({phone}){party}. На какую дату и время нужен столик?",
        "sr": "Zdravo, {name}! Drago mi je što vas ponovo vidim! Mogu da koristim vaše uobičajene podatke ({phone}){party}. Koji datum i vreme vam odgovara?",
        "hu": "Szia, {name}! Örülök, hogy újra látlak! Használhatom a szokásos adataidat ({phone}){party}. Milyen dátumra és időpontra gondoltál?",
        "de": "Hallo, {name}! Schön, Sie wiederzusehen! Ich kann Ihre üblichen Daten verwenden ({phone}){party}. Welches Datum und welche Uhrzeit passen Ihnen?",
    },
    "party_suffix": {
        "en": " for {guests} people",
        "ru": " на {guests} человек",
        "sr": " za {guests} osoba",
        "hu": " {guests} főre",
        "de": " für {guests} Personen",
    },
    "greeting_subsequent": {
        "en": "Perfect! I can help you with another reservation. What date and time would you like?",
        "ru": "Отлично! Помогу вам с ещё одной бронью. На какую дату и время?",
        "sr": "Odlično! Mogu da vam pomognem sa još jednom rezervacijom. Koji datum i vreme želite?",
        "hu": "Tökéletes! Segíthetek egy újabb foglalással. Milyen dátumra és időpontra?",
        "de": "Perfekt! Ich helfe Ihnen gerne bei einer weiteren Reservierung. Welches Datum und welche Uhrzeit?",
    },
    "name_choice_1": {
        "en": 'I noticed a different name on your profile. Which name should I use for this booking?\n1. "{request_name}" (new name)\n2. "{db_name}" (from your profile)',
        "ru": 'В вашем профиле указано другое имя. На какое имя оформить бронь?\n1. «{request_name}» (новое имя)\n2. «{db_name}» (из профиля)',
        "sr": 'Primetila sam drugo ime u vašem profilu. Na koje ime da napravim rezervaciju?\n1. "{request_name}" (novo ime)\n2. "{db_name}" (iz profila)',
        "hu": 'A profilodban más név szerepel. Melyik névre foglaljak?\n1. "{request_name}" (új név)\n2. "{db_name}" (a profilból)',
    },
    "name_choice_2": {
        "en": 'I need to clarify which name to use. Please choose:\n1. "{request_name}" (new name)\n2. "{db_name}" (from your profile)\n\nJust type the name you prefer, or "1" or "2".',
        "ru": 'Нужно уточнить имя. Пожалуйста, выберите:\n1. «{request_name}» (новое имя)\n2. «{db_name}» (из профиля)\n\nНапишите имя или просто «1» или «2».',
        "sr": 'Moram da razjasnim koje ime da koristim. Izaberite:\n1. "{request_name}" (novo ime)\n2. "{db_name}" (iz profila)\n\nNapišite ime ili samo "1" ili "2".',
        "hu": 'Tisztáznom kell, melyik nevet használjam. Kérlek válassz:\n1. "{request_name}" (új név)\n2. "{db_name}" (a profilból)\n\nÍrd be a nevet, vagy csak "1"-et vagy "2"-t.',
    },
    "name_choice_3": {
        "en": 'Please reply with just "1" for "{request_name}" or "2" for "{db_name}". If I still can\'t tell, I\'ll book under "{request_name}".',
        "ru": 'Пожалуйста, ответьте только «1» для «{request_name}» или «2» для «{db_name}». Если не получится, оформлю на «{request_name}».',
        "sr": 'Molim odgovorite samo "1" za "{request_name}" ili "2" za "{db_name}". Ako i dalje ne bude jasno, rezervisaću na "{request_name}".',
        "hu": 'Kérlek csak "1"-et válaszolj ("{request_name}") vagy "2"-t ("{db_name}"). Ha így sem egyértelmű, "{request_name}" névre foglalok.',
    },
    "name_choice_resolved": {
        "en": 'Got it, I\'ll book under "{name}".',
        "ru": 'Поняла, оформляю на имя «{name}».',
        "sr": 'Razumem, rezervišem na ime "{name}".',
        "hu": 'Rendben, "{name}" névre foglalok.',
    },
    "maya_ask_identifier": {
        "en": "I'd be happy to help with your reservation. Could you share the phone number or confirmation number it was booked under?",
        "ru": "С радостью помогу с бронью. Подскажите номер телефона или номер брони, на который она оформлена?",
        "sr": "Rado ću pomoći oko rezervacije. Možete li mi dati broj telefona ili broj potvrde rezervacije?",
        "hu": "Szívesen segítek a foglalással. Megadnád a telefonszámot vagy a foglalási számot?",
    },
    "maya_looking_up": {
        "en": "Let me look up your reservations first.",
        "ru": "Сейчас найду ваши бронирования.",
        "sr": "Prvo da pronađem vaše rezervacije.",
        "hu": "Először megkeresem a foglalásaidat.",
    },
    "maya_what_to_change": {
        "en": "I found your reservation #{id} on {date} at {time} for {guests} guests. What would you like to change?",
        "ru": "Нашла вашу бронь #{id} на {date} в {time} на {guests} гостей. Что хотите изменить?",
        "sr": "Pronašla sam rezervaciju #{id} za {date} u {time} za {guests} osoba. Šta želite da promenite?",
        "hu": "Megtaláltam a #{id} foglalást: {date} {time}, {guests} fő. Mit szeretnél módosítani?",
    },
    "maya_choose_reservation": {
        "en": "I found {count} reservations:\n{listing}\n\nWhich one would you like to change?",
        "ru": "Нашла {count} брони:\n{listing}\n\nКакую из них хотите изменить?",
        "sr": "Pronašla sam {count} rezervacije:\n{listing}\n\nKoju želite da promenite?",
        "hu": "{count} foglalást találtam:\n{listing}\n\nMelyiket szeretnéd módosítani?",
    },
    "maya_reservation_line": {
        "en": "#{id}: {date} at {time}, {guests} guests",
        "ru": "#{id}: {date} в {time}, {guests} гостей",
        "sr": "#{id}: {date} u {time}, {guests} osoba",
        "hu": "#{id}: {date} {time}, {guests} fő",
    },
    "maya_applying_change": {
        "en": "Updating reservation #{id} for you...",
        "ru": "Обновляю бронь #{id}...",
        "sr": "Ažuriram rezervaciju #{id}...",
        "hu": "Módosítom a #{id} foglalást...",
    },
    "maya_confirm_cancel": {
        "en": "Just to confirm: cancel reservation #{id} on {date} at {time} for {guests} guests? Please reply \"yes\" to cancel it.",
        "ru": "Уточню: отменить бронь #{id} на {date} в {time} на {guests} гостей? Ответьте «да», чтобы отменить.",
        "sr": "Da potvrdim: otkazati rezervaciju #{id} za {date} u {time} za {guests} osoba? Odgovorite \"da\" da je otkažete.",
        "hu": "Megerősítés: lemondjam a #{id} foglalást ({date} {time}, {guests} fő)? Válaszolj \"igen\"-nel a lemondáshoz.",
    },
    "maya_noop_time": {
        "en": "Your booking is already at {time}. Did you want a different time?",
        "ru": "Ваша бронь уже на {time}. Хотели другое время?",
        "sr": "Vaša rezervacija je već u {time}. Da li ste želeli drugo vreme?",
        "hu": "A foglalásod már {time}-ra szól. Más időpontot szeretnél?",
    },
    "maya_noop_date": {
        "en": "Your booking is already on {date}. Did you want a different date?",
        "ru": "Ваша бронь уже на {date}. Хотели другую дату?",
        "sr": "Vaša rezervacija je već za {date}. Da li ste želeli drugi datum?",
        "hu": "A foglalásod már {date}-ra szól. Más napot szeretnél?",
    },
    "maya_noop_guests": {
        "en": "Your booking is already for {guests} guests. Did you want a different party size?",
        "ru": "Ваша бронь уже на {guests} гостей. Хотели изменить количество?",
        "sr": "Vaša rezervacija je već za {guests} osoba. Da li ste želeli drugi broj gostiju?",
        "hu": "A foglalásod már {guests} főre szól. Más létszámot szeretnél?",
    },
    "apollo_need_original": {
        "en": "I'm here to help find alternative times, but I need to know what time you were originally looking for. Could you tell me the date, time and number of guests?",
        "ru": "Я помогу найти другое время, но мне нужно знать, какое время вы искали изначально. Подскажите дату, время и количество гостей?",
        "sr": "Tu sam da pomognem oko drugog termina, ali moram da znam koje vreme ste prvobitno tražili. Recite mi datum, vreme i broj gostiju?",
        "hu": "Segítek másik időpontot találni, de tudnom kell, eredetileg melyik időpontot kerested. Megadnád a dátumot, időt és a létszámot?",
    },
    "apollo_searching": {
        "en": "{time} on {date} is fully booked. Let me find the closest available times for {guests} guests.",
        "ru": "На {time} {date} всё занято. Сейчас найду ближайшее свободное время на {guests} гостей.",
        "sr": "Termin {time} {date} je popunjen. Potražiću najbliže slobodne termine za {guests} osoba.",
        "hu": "{date} {time} már foglalt. Megkeresem a legközelebbi szabad időpontokat {guests} főre.",
    },
    "apollo_alternatives": {
        "en": "{time} isn't available, but here are the best alternatives:\n{listing}\n\nWhich one works for you?",
        "ru": "{time} недоступно, но есть хорошие варианты:\n{listing}\n\nКакой вам подходит?",
        "sr": "{time} nije dostupno, ali evo najboljih alternativa:\n{listing}\n\nKoji vam odgovara?",
        "hu": "{time} nem elérhető, de ezek a legjobb alternatívák:\n{listing}\n\nMelyik megfelelő?",
    },
    "apollo_no_alternatives": {
        "en": "I'm sorry, there are no free tables near {time} on {date}. Would another date work for you?",
        "ru": "К сожалению, рядом с {time} {date} свободных столиков нет. Может, подойдёт другая дата?",
        "sr": "Nažalost, nema slobodnih stolova oko {time} {date}. Da li vam odgovara neki drugi datum?",
        "hu": "Sajnos {date} {time} körül nincs szabad asztal. Megfelelne egy másik nap?",
    },
    "apollo_option_line": {
        "en": "• {time} - {reason}",
    },
    "apollo_reason_close": {
        "en": "Very close to your preferred time",
        "ru": "Совсем близко к желаемому времени",
        "sr": "Veoma blizu željenog vremena",
        "hu": "Nagyon közel a kívánt időponthoz",
    },
    "apollo_reason_early": {
        "en": "Early dinner, quieter and more intimate",
        "ru": "Ранний ужин, тише и уютнее",
        "sr": "Rana večera, mirnije i intimnije",
        "hu": "Korai vacsora, csendesebb és meghittebb",
    },
    "apollo_reason_late": {
        "en": "Late dinner, perfect for a relaxed evening",
        "ru": "Поздний ужин, идеально для спокойного вечера",
        "sr": "Kasna večera, savršena za opušteno veče",
        "hu": "Késői vacsora, tökéletes egy nyugodt estéhez",
    },
    "apollo_reason_lunch": {
        "en": "Lunch time, great for a midday meal",
        "ru": "Время обеда, отлично для дневной трапезы",
        "sr": "Vreme ručka, odlično za podnevni obrok",
        "hu": "Ebédidő, remek egy déli étkezéshez",
    },
    "apollo_reason_available": {
        "en": "Available with good service",
        "ru": "Свободно, с хорошим обслуживанием",
        "sr": "Slobodno, uz dobru uslugu",
        "hu": "Szabad, jó kiszolgálással",
    },
    "apollo_selected": {
        "en": "Great choice! Let me reserve {time} on {date} for you.",
        "ru": "Отличный выбор! Бронирую {time} на {date}.",
        "sr": "Odličan izbor! Rezervišem {time} za {date}.",
        "hu": "Remek választás! Lefoglalom: {date} {time}.",
    },
    "conductor_handoff_booking": {
        "en": "Of course! Let me help you with a new reservation.",
        "ru": "Конечно! Помогу с новым бронированием.",
        "sr": "Naravno! Pomoći ću vam sa novom rezervacijom.",
        "hu": "Persze! Segítek egy új foglalással.",
    },
    "conductor_handoff_reservations": {
        "en": "Sure, let me help you with your existing reservation.",
        "ru": "Конечно, помогу с вашей текущей бронью.",
        "sr": "Naravno, pomoći ću vam oko postojeće rezervacije.",
        "hu": "Persze, segítek a meglévő foglalásoddal.",
    },
    "conductor_thanks": {
        "en": "You're very welcome! Is there anything else I can help you with?",
        "ru": "Пожалуйста! Могу ещё чем-нибудь помочь?",
        "sr": "Nema na čemu! Mogu li još nešto da učinim za vas?",
        "hu": "Szívesen! Segíthetek még valamiben?",
    },
}


def render(key: str, language: str, **values: Any) -> str:
    """Format the template for `key` in `language`, falling back to English."""
    templates = MESSAGES[key]
    template = templates.get(language) or templates["en"]
    return template.format(**values)


def language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, "English")
