from jobpilot.contacts import (
    ContactExtractor,
    company_page_url,
    deduplicate,
    extract_emails,
    extract_phones,
)
from jobpilot.models import HRContact

JOB_PAGE = """
<html><body>
  <script>var tracking = "pixel@sentry.io";</script>
  <p>Send your CV to Careers@Acme.io or hr@acme.io.</p>
  <p>Call us: +91 98765 43210</p>
  <p>Ref number 2024-11-05-1234</p>
  <img src="logo@2x.png">
  <div class="hirer-card__hirer-information">
    <a href="https://www.linkedin.com/in/priya-sharma?trk=public"><strong>Priya Sharma</strong></a>
    <span class="hirer-card__job-poster">Talent Acquisition Lead</span>
  </div>
</body></html>
"""

COMPANY_PAGE = """
<ul>
  <li class="org-people-profile-card">
    <div class="org-people-profile-card__profile-title">Ravi Kumar</div>
    <div class="artdeco-entity-lockup__subtitle">Senior Recruiter at Acme</div>
    <a href="https://www.linkedin.com/in/ravi-kumar">profile</a>
  </li>
  <li class="org-people-profile-card">
    <div class="org-people-profile-card__profile-title">Anil Rao</div>
    <div class="artdeco-entity-lockup__subtitle">Software Engineer</div>
    <a href="https://www.linkedin.com/in/anil-rao">profile</a>
  </li>
</ul>
<dd class="company-info">Reach us at talent@acme.io</dd>
"""


def test_extract_emails_skips_assets_and_noise():
    text = "write to a@acme.io, A@acme.io, icon@2x.png, noreply@example.com"
    assert extract_emails(text) == ["a@acme.io"]


def test_extract_phones_needs_a_hint_on_the_line():
    assert extract_phones("Phone: +1 (415) 555-0100") == ["+1 (415) 555-0100"]
    assert extract_phones("Order id 4155550100123") == []


def test_job_page_contacts():
    contacts = ContactExtractor().extract(JOB_PAGE, "Acme")

    emails = [c.email for c in contacts if c.email]
    assert emails == ["careers@acme.io", "hr@acme.io"]
    assert contacts[0].phone == "+91 98765 43210"
    poster = [c for c in contacts if c.linkedin_profile]
    assert len(poster) == 1
    assert poster[0].name == "Priya Sharma"
    assert poster[0].title == "Talent Acquisition Lead"
    assert poster[0].linkedin_profile == "https://www.linkedin.com/in/priya-sharma"


def test_company_page_only_when_fetcher_given():
    urls = []

    def fetch(url):
        urls.append(url)
        return COMPANY_PAGE

    contacts = ContactExtractor().extract("", "Acme Labs", fetch_company_page=fetch)

    assert urls == ["https://www.linkedin.com/company/acme-labs/people/"]
    assert [c.name for c in contacts if c.name] == ["Ravi Kumar"]
    assert "talent@acme.io" in [c.email for c in contacts]


def test_failing_company_fetch_keeps_job_page_results():
    def fetch(url):
        raise TimeoutError("page load timeout")

    contacts = ContactExtractor().extract("<p>jobs@acme.io</p>", "Acme", fetch_company_page=fetch)
    assert [c.email for c in contacts] == ["jobs@acme.io"]


def test_empty_page_yields_no_contacts():
    assert ContactExtractor().extract("", "Acme") == []
    assert ContactExtractor().extract("<p>No contacts here</p>", "") == []


def test_deduplicate_by_email_then_profile():
    contacts = [
        HRContact(email="A@acme.io"),
        HRContact(email="a@acme.io", name="dup"),
        HRContact(linkedin_profile="https://linkedin.com/in/x"),
        HRContact(linkedin_profile="https://linkedin.com/in/x"),
        HRContact(name="nobody"),
    ]
    assert len(deduplicate(contacts)) == 2


def test_company_page_url_slug():
    assert company_page_url(" Tata Consultancy Services ") == "https://www.linkedin.com/company/tata-consultancy-services/people/"
