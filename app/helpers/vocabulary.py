"""Keyword tables used by signal extraction. Order matters where noted."""

SKILL_CATEGORIES = {
    "programming": ["javascript", "typescript", "python", "java", "c++", "c#", "php", "ruby", "go", "rust", "swift", "kotlin"],
    "frontend": ["react", "angular", "vue", "html", "css", "sass", "less", "bootstrap", "tailwind"],
    "backend": ["node.js", "express", "django", "flask", "spring", "laravel", "rails", "fastapi"],
    "database": ["mysql", "postgresql", "mongodb", "redis", "elasticsearch", "cassandra", "oracle"],
    "cloud": ["aws", "azure", "gcp", "docker", "kubernetes", "terraform", "jenkins"],
    "mobile": ["react native", "flutter", "ios", "android", "xamarin"],
    "ai_ml": ["machine learning", "deep learning", "tensorflow", "pytorch", "scikit-learn", "pandas", "numpy"],
}

OTHER_CATEGORY = "other"

# junior is checked first; on equal counts the earlier level wins
EXPERIENCE_LEVELS = {
    "junior": ["junior", "entry level", "graduate", "intern", "fresher", "0-2 years"],
    "mid": ["mid level", "intermediate", "experienced", "2-5 years", "3-6 years"],
    "senior": ["senior", "lead", "principal", "architect", "5+ years", "7+ years"],
    "executive": ["manager", "director", "vp", "cto", "ceo", "head of"],
}

ROLE_KEYWORDS = [
    "developer", "engineer", "programmer", "analyst", "manager", "director",
    "architect", "consultant", "specialist", "lead", "senior", "junior",
    "designer", "tester", "devops", "fullstack", "frontend", "backend",
]

EDUCATION_KEYWORDS = [
    "bachelor", "master", "phd", "degree", "university", "college",
    "computer science", "engineering",
]

CERTIFICATION_KEYWORDS = [
    "certified", "certification", "aws certified", "microsoft certified",
    "google cloud", "oracle certified", "cisco", "pmp", "scrum master",
]

LANGUAGE_KEYWORDS = ["english", "spanish", "french", "german", "mandarin", "hindi", "arabic"]

# Skill classification for scraped skill lists; certifications win ties
CLASSIFIER_CERT_KEYWORDS = [
    "certified", "certification", "aws certified", "pmp", "scrum master",
    "cissp", "cisa", "comptia", "microsoft certified", "google certified",
]

CLASSIFIER_TECH_KEYWORDS = [
    "javascript", "python", "java", "react", "node", "sql", "aws", "docker",
    "kubernetes", "git", "angular", "vue", "mongodb", "postgresql", "redis",
    "tensorflow", "machine learning", "data science", "ai", "blockchain",
]

CLASSIFIER_SOFT_KEYWORDS = [
    "leadership", "communication", "teamwork", "problem solving", "creativity",
    "adaptability", "time management", "critical thinking", "collaboration",
]

# Headline checks in priority order, before the years-based fallback
SENIORITY_TITLES = [
    ("Director+", ["director", "vp", "head of"]),
    ("Senior", ["senior", "lead", "principal"]),
    ("Manager", ["manager", "supervisor"]),
]
