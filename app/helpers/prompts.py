ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert HR analyst specializing in candidate-job matching. "
    "Provide detailed, objective analysis with numerical scores and clear reasoning."
)

ANALYSIS_PROMPT = """Analyze the following candidate against the job requirement and provide a detailed matching score.

CANDIDATE PROFILE:
{candidate}

JOB REQUIREMENT:
Title: {title}
Description: {description}
Required Skills: {skills}
Experience: {exp_min}-{exp_max} years
Location: {location}
Education: {education}

Return strict JSON only, in this format:
{{
  "overallScore": <number 0-100>,
  "subScores": {{
    "skills": <number 0-100>,
    "experience": <number 0-100>,
    "education": <number 0-100>,
    "keywords": <number 0-100>
  }},
  "matchedSkills": ["skill1", "skill2"],
  "missingSkills": ["skill3"],
  "strengths": ["strength1"],
  "weaknesses": ["weakness1"],
  "recommendations": ["rec1"],
  "reasoning": ["key factor 1", "key factor 2"]
}}
"""

SKILLS_SYSTEM_PROMPT = "You are a precise skill extractor. Respond with JSON only."

SKILLS_PROMPT = """Extract the professional skills from the text below.
Return JSON: {{"technical": [...], "soft": [...], "certifications": [...], "tools": [...]}}

- Normalize skills to short lowercase tokens.
- If unknown, use an empty list.

CONTEXT: {context}

TEXT:
{text}
"""

PROFILE_SYSTEM_PROMPT = "You are an information extractor for professional profiles. Respond with JSON only."

PROFILE_PROMPT = """Parse the profile content below and return strict JSON with keys:
name, headline, location, summary, experience, education, skills.

- experience: list of {{"title", "company", "duration", "description"}}
- education: list of {{"school", "degree", "year"}}
- skills: list of strings
- If unknown, use an empty string or empty list.

PROFILE:
{profile}
"""
