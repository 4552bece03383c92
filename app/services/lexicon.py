"""
Bilingual Lexicon Tables.

Static English/Arabic dictionaries used by the classifiers. Every table maps a
tagged enum (Subject, Topic, Attribute) to compiled patterns and a weight, so
classification code iterates the tables generically.

Key features:
1. Subject (academic major) patterns with per-language keywords
2. Topic and attribute keyword families
3. Follow-up discourse vocabulary (continuations, markers, pronouns)
4. Colloquial Arabic study-intent dictionaries
5. Assistant-response topic families
"""
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, List, Tuple

# Arabic clitics: up to two prefix letters (و ف ب ل ك) and the definite article.
AR_CLITICS = r"[وفبلك]{0,2}(?:ال)?"

ARABIC_TEXT = re.compile(r"[\u0600-\u06FF]")


def english_pattern(*terms: str) -> re.Pattern:
    """Compile word-bounded, case-insensitive alternatives."""
    return re.compile(r"\b(?:" + "|".join(terms) + r")\b", re.IGNORECASE)


def arabic_pattern(*terms: str) -> re.Pattern:
    """Compile Arabic alternatives that tolerate attached clitics."""
    return re.compile(r"(?<!\w)" + AR_CLITICS + r"(?:" + "|".join(terms) + r")(?!\w)")


def is_arabic(term: str) -> bool:
    return bool(ARABIC_TEXT.search(term))


@lru_cache(maxsize=1024)
def term_pattern(term: str) -> re.Pattern:
    """Pattern matching a single literal keyword in either script."""
    escaped = re.escape(term)
    if is_arabic(term):
        return arabic_pattern(escaped)
    return english_pattern(escaped)


def contains_term(text: str, term: str) -> bool:
    return bool(term_pattern(term).search(text))


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------

class Subject(str, Enum):
    """Academic majors the assistant recognises."""
    COMPUTER_SCIENCE = "Computer Science"
    OPTOMETRY = "Optometry"
    ENGINEERING = "Engineering"
    MEDICINE = "Medicine"
    BUSINESS = "Business"
    LAW = "Law"
    PHARMACY = "Pharmacy"
    NURSING = "Nursing"
    DENTISTRY = "Dentistry"
    ARCHITECTURE = "Architecture"
    INFORMATION_TECHNOLOGY = "Information Technology"
    EDUCATION = "Education"


@dataclass(frozen=True)
class SubjectEntry:
    """Lexicon row for one subject."""
    subject: Subject
    arabic_name: str
    en_pattern: re.Pattern
    ar_pattern: re.Pattern
    en_keywords: Tuple[str, ...]
    ar_keywords: Tuple[str, ...]
    confidence: float = 0.8

    def pattern_for(self, language: str) -> re.Pattern:
        return self.ar_pattern if language == "ar" else self.en_pattern

    def keywords_for(self, language: str) -> Tuple[str, ...]:
        return self.ar_keywords if language == "ar" else self.en_keywords


# Order matters: ties go to the earlier entry.
SUBJECTS: Tuple[SubjectEntry, ...] = (
    SubjectEntry(
        subject=Subject.COMPUTER_SCIENCE,
        arabic_name="علوم الحاسوب",
        en_pattern=english_pattern(r"computer\s*science", "cs", "programming", "software", "coding"),
        ar_pattern=arabic_pattern(r"علوم\s*الحاسوب", r"علم\s*الحاسوب", r"علوم\s*الكمبيوتر", "برمجة", "حاسوب"),
        en_keywords=("computing", "computer", "developer"),
        ar_keywords=("كمبيوتر", "حاسب", "برمجيات"),
    ),
    SubjectEntry(
        subject=Subject.OPTOMETRY,
        arabic_name="البصريات",
        en_pattern=english_pattern("optometry", "optics", "optometrist", r"vision\s*science", r"eye\s*care"),
        ar_pattern=arabic_pattern("بصريات", r"علم\s*البصريات", r"علوم\s*البصر", r"رعاية\s*العين"),
        en_keywords=("optical", "ophthalmic"),
        ar_keywords=("عيون", "نظارات"),
    ),
    SubjectEntry(
        subject=Subject.ENGINEERING,
        arabic_name="الهندسة",
        en_pattern=english_pattern("engineering", "engineer", "engineers"),
        ar_pattern=arabic_pattern("هندسة", "مهندس"),
        en_keywords=("mechanical", "electrical"),
        ar_keywords=("ميكانيك", "كهرباء"),
    ),
    SubjectEntry(
        subject=Subject.MEDICINE,
        arabic_name="الطب",
        en_pattern=english_pattern("medicine", "medical", "doctor", "physician"),
        # Bare "طب" is also a colloquial interjection, so the article is required.
        ar_pattern=arabic_pattern("الطب", "طبيب", "أطباء"),
        en_keywords=("mbbs", "surgery", "clinical"),
        ar_keywords=("جراحة", "دكتور"),
    ),
    SubjectEntry(
        subject=Subject.BUSINESS,
        arabic_name="إدارة الأعمال",
        en_pattern=english_pattern("business", r"business\s*administration", "management", "accounting", "marketing", "finance"),
        ar_pattern=arabic_pattern(r"إدارة\s*الأعمال", r"ادارة\s*الاعمال", "محاسبة", "تسويق"),
        en_keywords=("mba", "commerce", "economics"),
        ar_keywords=("تجارة", "اقتصاد"),
    ),
    SubjectEntry(
        subject=Subject.LAW,
        arabic_name="القانون",
        en_pattern=english_pattern("law", r"legal\s*studies", "jurisprudence"),
        ar_pattern=arabic_pattern("قانون", "حقوق"),
        en_keywords=("lawyer", "legal"),
        ar_keywords=("محاماة", "محامي"),
    ),
    SubjectEntry(
        subject=Subject.PHARMACY,
        arabic_name="الصيدلة",
        en_pattern=english_pattern("pharmacy", "pharmacist", "pharmaceutical"),
        ar_pattern=arabic_pattern("صيدلة", "صيدلي"),
        en_keywords=("pharmacology",),
        ar_keywords=("أدوية",),
    ),
    SubjectEntry(
        subject=Subject.NURSING,
        arabic_name="التمريض",
        en_pattern=english_pattern("nursing", "nurse", "nurses"),
        ar_pattern=arabic_pattern("تمريض"),
        en_keywords=("midwifery",),
        ar_keywords=("ممرض", "ممرضة"),
    ),
    SubjectEntry(
        subject=Subject.DENTISTRY,
        arabic_name="طب الأسنان",
        en_pattern=english_pattern("dentistry", "dental", "dentist"),
        ar_pattern=arabic_pattern(r"طب\s*الأسنان", r"طب\s*الاسنان"),
        en_keywords=("teeth", "orthodontics"),
        ar_keywords=("أسنان", "اسنان"),
        confidence=0.85,
    ),
    SubjectEntry(
        subject=Subject.ARCHITECTURE,
        arabic_name="الهندسة المعمارية",
        en_pattern=english_pattern("architecture", "architect", "architectural"),
        ar_pattern=arabic_pattern(r"هندسة\s*المعمارية", r"هندسة\s*معمارية", "عمارة"),
        en_keywords=(),
        ar_keywords=("معماري",),
        confidence=0.85,
    ),
    SubjectEntry(
        subject=Subject.INFORMATION_TECHNOLOGY,
        arabic_name="تكنولوجيا المعلومات",
        en_pattern=english_pattern(r"information\s*technology", r"information\s*systems"),
        ar_pattern=arabic_pattern(r"تكنولوجيا\s*المعلومات", r"تقنية\s*المعلومات", r"نظم\s*المعلومات"),
        en_keywords=("networking", "cybersecurity"),
        ar_keywords=("شبكات",),
    ),
    SubjectEntry(
        subject=Subject.EDUCATION,
        arabic_name="التربية",
        en_pattern=english_pattern("education", "teaching", "pedagogy"),
        ar_pattern=arabic_pattern("تربية", r"علوم\s*تربوية"),
        en_keywords=("teacher",),
        ar_keywords=("معلم", "تدريس"),
    ),
)

SUBJECTS_BY_NAME: Dict[str, SubjectEntry] = {entry.subject.value: entry for entry in SUBJECTS}


# ---------------------------------------------------------------------------
# Topics and attributes
# ---------------------------------------------------------------------------

class Topic(str, Enum):
    """Functional question categories."""
    FEES = "fees"
    ADMISSION = "admission"
    REQUIREMENTS = "requirements"
    DURATION = "duration"
    COURSES = "courses"
    SCHEDULE = "schedule"
    GRADING = "grading"


# First matching topic wins, so the order is part of the contract.
TOPIC_PATTERNS: Tuple[Tuple[Topic, re.Pattern, re.Pattern], ...] = (
    (
        Topic.FEES,
        english_pattern(r"fees?", "tuition", r"costs?", r"prices?", r"payments?", "pay", "paying",
                        r"installments?", r"discounts?", "expensive", "cheap", r"how\s+much", "afford"),
        arabic_pattern("رسوم", "تكلفة", "تكاليف", "دفع", "سعر", "أسعار", "قسط", "أقساط", "تقسيط", "خصم", "قديش"),
    ),
    (
        Topic.ADMISSION,
        english_pattern(r"admissions?", "apply", "applying", r"applications?", "enroll", "enrol",
                        "enrollment", "register", "registration", "acceptance", "accepted"),
        arabic_pattern("قبول", "تقديم", "تسجيل", "التحاق"),
    ),
    (
        Topic.REQUIREMENTS,
        english_pattern(r"requirements?", r"prerequisites?", "required", r"documents?", "criteria",
                        "eligible", "eligibility", "conditions"),
        arabic_pattern("متطلبات", "شروط", "وثائق", "أوراق"),
    ),
    (
        Topic.DURATION,
        english_pattern("duration", r"how\s+long", r"years?", r"semesters?", r"graduat(?:e|ion)"),
        arabic_pattern("مدة", "سنوات", "فصول", "تخرج"),
    ),
    (
        Topic.COURSES,
        english_pattern(r"courses?", "curriculum", "subjects", "classes", "syllabus", r"study\s+plan",
                        r"credit\s+hours?", r"modules?"),
        arabic_pattern("مساقات", "مساق", "مواد", "منهاج", r"خطة\s*دراسية", r"ساعات\s*معتمدة"),
    ),
    (
        Topic.SCHEDULE,
        english_pattern(r"schedules?", "timetable", "calendar", r"deadlines?", r"dates?"),
        arabic_pattern("جدول", "مواعيد", "موعد", "تقويم"),
    ),
    (
        Topic.GRADING,
        english_pattern(r"grades?", "grading", r"marks?", "gpa", r"exams?", r"assessments?"),
        arabic_pattern("علامات", "درجات", "امتحان", "امتحانات", r"معدل\s*تراكمي"),
    ),
)


class Attribute(str, Enum):
    """Topic-like descriptors carried across subject switches."""
    FEES = "fees"
    REQUIREMENTS = "requirements"
    DURATION = "duration"
    COURSES = "courses"
    APPLICATION = "application"
    LOCATION = "location"
    CONTACT = "contact"


ATTRIBUTE_PATTERNS: Tuple[Tuple[Attribute, re.Pattern, re.Pattern], ...] = (
    (
        Attribute.FEES,
        english_pattern(r"fees?", "tuition", r"costs?", "price", r"payments?", r"how\s+much"),
        arabic_pattern("رسوم", "تكلفة", "سعر", "دفع", "قسط", "قديش"),
    ),
    (
        Attribute.REQUIREMENTS,
        english_pattern(r"requirements?", r"prerequisites?", "criteria", "eligibility",
                        r"minimum\s+average", r"documents?"),
        arabic_pattern("متطلبات", "شروط", "وثائق"),
    ),
    (
        Attribute.DURATION,
        english_pattern("duration", r"how\s+long", r"years?", r"semesters?"),
        arabic_pattern("مدة", "سنوات", "فصول"),
    ),
    (
        Attribute.COURSES,
        english_pattern(r"courses?", "curriculum", "classes", "syllabus", r"credit\s+hours?", r"study\s+plan"),
        arabic_pattern("مساقات", "مواد", r"خطة\s*دراسية", r"ساعات\s*معتمدة"),
    ),
    (
        Attribute.APPLICATION,
        english_pattern("apply", r"applications?", r"admissions?", "enroll", "enrollment",
                        "register", "registration", r"deadlines?"),
        arabic_pattern("تقديم", "قبول", "تسجيل", "التحاق"),
    ),
    (
        Attribute.LOCATION,
        english_pattern("where", "location", "located", "campus", "building", "address"),
        arabic_pattern("وين", "أين", "موقع", "مكان", "حرم", "مبنى"),
    ),
    (
        Attribute.CONTACT,
        english_pattern("contact", "phone", r"e-?mail", "call", r"office\s+hours"),
        arabic_pattern("تواصل", "هاتف", "ايميل", "بريد"),
    ),
)

ATTRIBUTE_LABELS_AR: Dict[str, str] = {
    Attribute.FEES.value: "الرسوم",
    Attribute.REQUIREMENTS.value: "المتطلبات",
    Attribute.DURATION.value: "مدة الدراسة",
    Attribute.COURSES.value: "المساقات",
    Attribute.APPLICATION.value: "التقديم",
    Attribute.LOCATION.value: "الموقع",
    Attribute.CONTACT.value: "معلومات التواصل",
}


# ---------------------------------------------------------------------------
# Follow-up vocabulary
# ---------------------------------------------------------------------------

CONTINUATION_PHRASES: Dict[str, re.Pattern] = {
    "en": re.compile(
        r"(?:okay|ok|and|then|next|go on|continue|proceed|keep going|tell me more|more|"
        r"yes|yeah|yep|sure|please do|go ahead|"
        r"what else|anything else|more information|more info|elaborate)"
    ),
    "ar": re.compile(
        r"(?:طيب|ماشي|و|ثم|التالي|استمر|أكمل|اكمل|كمل|"
        r"نعم|أجل|أكيد|اكيد|تفضل|"
        r"ماذا أيضا|ماذا أيضاً|هل هناك المزيد|معلومات أكثر|المزيد)"
    ),
}

LEADING_MARKERS: Dict[str, re.Pattern] = {
    "en": re.compile(r"^(?:and|but|so|also|what about|how about|tell me about|what if)\b", re.IGNORECASE),
    "ar": re.compile(r"^(?:وماذا عن|ماذا عن|شو عن|لكن|بس|كمان|أيضا|أيضاً|كما|و)"),
}

REFERENTIAL_PRONOUNS: Dict[str, re.Pattern] = {
    "en": re.compile(r"\b(?:this|that|these|those|it|they|them)\b", re.IGNORECASE),
    "ar": re.compile(r"(?<!\w)(?:هذا|هذه|ذلك|تلك|هؤلاء|هو|هي|هم|هاد|هادا|هاي)(?!\w)"),
}

# Group 1 is the possessed attribute phrase.
POSSESSIVE_PATTERNS: Dict[str, re.Pattern] = {
    "en": re.compile(r"\b(?:its|their)\s+([a-z][a-z\s-]*?)\s*(?:[?.!,؟]|$)", re.IGNORECASE),
    "ar": re.compile(r"(?<!\w)(\w+)\s+(?:تبعه|تبعها|تبعو|تبعهم|حقه|حقها)(?!\w)"),
}

BACK_REFERENCE_PATTERNS: Dict[str, Tuple[re.Pattern, ...]] = {
    "en": (
        english_pattern("mentioned", "said", "told", "stated", "above", "previous", "previously", "earlier", "before"),
        english_pattern("again", r"one\s+more\s+time", "repeat"),
    ),
    "ar": (
        re.compile(r"(?:ذكرت|قلت|أخبرتني|سابقا|سابقاً|قبل|أعلاه)"),
        re.compile(r"(?:مرة أخرى|مرة ثانية|كرر|مجددا|مجدداً)"),
    ),
}

INCOMPLETE_QUESTIONS: Dict[str, Tuple[re.Pattern, ...]] = {
    "en": (
        re.compile(r"^(?:and then|for what|with what|by what|from where)\s*\??$", re.IGNORECASE),
        re.compile(r"^(?:how much|how many|when|where|why|who)\s*\??$", re.IGNORECASE),
    ),
    "ar": (
        re.compile(r"^(?:وماذا|وبعدين|كم|متى|أين|وين|لماذا|ليش|من)\s*[?؟]?$"),
    ),
}

# References to a number category without repeating the digits.
NUMBER_CATEGORY_REFERENCES: Dict[str, re.Pattern] = {
    "fee": re.compile(r"\b(?:fees?|cost|price|amount|payment)\b|(?:رسوم|تكلفة|سعر|مبلغ|دفع)", re.IGNORECASE),
    "average": re.compile(r"\b(?:average|grade|score|mark|percentage)\b|(?:معدل|علامة|نسبة)", re.IGNORECASE),
    "credits": re.compile(r"\b(?:credits?|hours?|points?)\b|(?:ساعات|ساعة)", re.IGNORECASE),
    "duration": re.compile(r"\b(?:years?|duration|how long)\b|(?:سنوات|سنة|مدة)", re.IGNORECASE),
    "courses": re.compile(r"\b(?:courses?)\b|(?:مساقات|مواد)", re.IGNORECASE),
}

CLARIFICATION_PATTERNS: Dict[str, re.Pattern] = {
    "en": re.compile(
        r"\b(?:what do you mean|could you explain|can you explain|please clarify|"
        r"i don't understand|i do not understand|what does that mean)\b",
        re.IGNORECASE,
    ),
    "ar": re.compile(r"(?:ماذا تقصد|شو قصدك|شو يعني|هل يمكنك التوضيح|من فضلك وضح|وضح أكثر|لا أفهم|مش فاهم)"),
}


# ---------------------------------------------------------------------------
# Study vocabulary
# ---------------------------------------------------------------------------

SUBJECT_INDICATORS: Dict[str, re.Pattern] = {
    "en": english_pattern(
        r"majors?", r"programs?", "programme", "faculty", "department", r"courses?", r"grades?",
        "grading", r"exams?", r"lectures?", r"class(?:es)?", "system", "requirements", "fees",
        "cost", "student", "studying", "study", "tuition", "admission", "specialization",
    ),
    # Substring match: Arabic words carry attached clitics and suffixes.
    "ar": re.compile(
        r"(?:دراسة|تخصص|كلية|قسم|برنامج|مساق|علامات|درجات|امتحان|محاضرة|محاضرات|نظام|"
        r"متطلبات|رسوم|تكلفة|طالب|طالبة|ادرس|أدرس|بدرس|بتخصص)"
    ),
}

STUDY_CARRIERS: Dict[str, re.Pattern] = {
    "en": english_pattern("study", "studying", "student", "major", "majoring", "program", "faculty",
                          "department", r"speciali[sz](?:e|ing)"),
    "ar": re.compile(r"(?:أدرس|ادرس|بدرس|تخصص|طالب|طالبة|دراسة|كلية|أتخصص|اتخصص|قسم)"),
}

# Checked in order; the text after the first marker is searched for a subject.
STUDY_INTENT_MARKERS: Tuple[str, ...] = (
    "تخصص", "طالب", "طالبة", "ادرس", "أدرس", "دراسة", "كلية", "قسم",
    "بدرس", "بدي ادرس", "بدي اتخصص", "عم ادرس", "بتخصص",
)

DIALECT_STUDY_PHRASES: Tuple[Tuple[re.Pattern, float], ...] = (
    (re.compile(r"شو\s*بدي\s*ادرس"), 0.7),
    (re.compile(r"وين\s*احسن\s*اتخصص"), 0.7),
    (re.compile(r"شو\s*رأيك\s*(?:في|ب)\s*تخصص"), 0.75),
    (re.compile(r"شو\s*بتنصحني\s*ادرس"), 0.8),
    (re.compile(r"حاب(?:ب|ة)\s*ادرس"), 0.7),
    (re.compile(r"افضل\s*تخصص"), 0.7),
    (re.compile(r"احسن\s*تخصص"), 0.7),
    (re.compile(r"تخصص\s*(?:الي|يلي)\s*مطلوب"), 0.75),
)


# ---------------------------------------------------------------------------
# Assistant responses
# ---------------------------------------------------------------------------

RESPONSE_TOPIC_FAMILIES: Tuple[Tuple[str, re.Pattern], ...] = (
    ("fees", re.compile(english_pattern(r"fees?", "tuition", r"costs?", r"payments?").pattern
                        + "|" + arabic_pattern("رسوم", "تكلفة", "دفع").pattern, re.IGNORECASE)),
    ("admission", re.compile(english_pattern(r"admissions?", "apply", r"applications?", "enroll").pattern
                             + "|" + arabic_pattern("قبول", "تسجيل", "التحاق").pattern, re.IGNORECASE)),
    ("programs", re.compile(english_pattern(r"programs?", r"majors?", r"degrees?", "bachelor", "master").pattern
                            + "|" + arabic_pattern("برنامج", "برامج", "تخصص", "بكالوريوس", "ماجستير").pattern,
                            re.IGNORECASE)),
    ("scholarships", re.compile(english_pattern(r"scholarships?", r"financial\s+aid", r"grants?").pattern
                                + "|" + arabic_pattern("منحة", "منح", "مساعدات").pattern, re.IGNORECASE)),
    ("campus", re.compile(english_pattern("campus", "facilities", "library").pattern
                          + "|" + arabic_pattern("حرم", "مكتبة", "مرافق").pattern, re.IGNORECASE)),
    ("academics", re.compile(english_pattern(r"courses?", "curriculum", r"credit\s+hours?", "grading").pattern
                             + "|" + arabic_pattern("مساق", "مساقات", r"خطة\s*دراسية", r"ساعات\s*معتمدة").pattern,
                             re.IGNORECASE)),
    ("administration", re.compile(english_pattern("registrar", "dean", r"offices?").pattern
                                  + "|" + arabic_pattern("عمادة", "مكتب", "شؤون").pattern, re.IGNORECASE)),
    ("housing", re.compile(english_pattern("housing", r"dormitor(?:y|ies)", "accommodation").pattern
                           + "|" + arabic_pattern("سكن", "إسكان").pattern, re.IGNORECASE)),
)

MARKDOWN_HEADING = re.compile(r"^#{1,6}\s*(.+?)\s*#*\s*$", re.MULTILINE)


def subject_names() -> List[str]:
    return [entry.subject.value for entry in SUBJECTS]
