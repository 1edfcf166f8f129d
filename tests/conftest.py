import os

# Keep test runs off the file log handlers
os.environ.setdefault("ENVIRONMENT", "testing")

import pytest
from unittest.mock import AsyncMock, MagicMock

from app.models.models import ExperienceRange, JobRequirement, Submission


RESUME_TEXT = """Jane Doe
jane.doe@example.com
Summary
Senior Python developer with 6 years of experience building APIs
Experience
Senior Engineer
Acme Corp
3 yrs
Built Django and PostgreSQL services on AWS
Skills
Python, Django, Docker
Education
Bachelor in Computer Science from State University 2014
"""

PROFILE_HTML = """
<html>
  <head><title>Jane Doe | LinkedIn</title></head>
  <body>
    <h1 class="text-heading-xlarge">Jane Doe</h1>
    <div class="text-body-medium break-words">Lead Backend Engineer at Acme</div>
    <span class="text-body-small inline t-black--light break-words">Berlin, Germany</span>
    <span class="t-black--light t-normal"><span class="link-without-visited-state">500+ connections</span></span>
    <section>
      <div id="experience"></div>
      <div class="pvs-list__outer-container">
        <div class="pvs-entity">
          <div class="mr1 t-bold"><span>Lead Engineer</span></div>
          <span class="t-14 t-normal"><span>Acme Corp</span></span>
          <span class="t-14 t-normal t-black--light"><span>2 yrs 3 mos</span></span>
        </div>
        <div class="pvs-entity">
          <div class="mr1 t-bold"><span>Freelance</span></div>
        </div>
      </div>
    </section>
    <section>
      <div id="skills"></div>
      <div class="pvs-list__outer-container">
        <div class="mr1 t-bold"><span>Python</span></div>
        <div class="mr1 t-bold"><span>Kubernetes</span></div>
      </div>
    </section>
  </body>
</html>
"""


@pytest.fixture
def requirement():
    return JobRequirement(
        requirement_id="req-1",
        title="Python Developer",
        description="Looking for a Python developer with Django, PostgreSQL and AWS experience. Bachelor degree preferred.",
        skills=["Python", "Django"],
        experience=ExperienceRange(min=5, max=8),
        location="Remote",
    )


@pytest.fixture
def resume_submission():
    return Submission(submission_id="sub-1", candidate_name="Jane Doe", resume_text=RESUME_TEXT)


@pytest.fixture
def store():
    mock_store = MagicMock()
    mock_store.save = AsyncMock()
    mock_store.get_by_submission = AsyncMock()
    mock_store.get_analysis_stats = AsyncMock()
    return mock_store


@pytest.fixture
def resume_text():
    return RESUME_TEXT


@pytest.fixture
def profile_html():
    return PROFILE_HTML
