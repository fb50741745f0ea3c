"""
Pytest fixtures for freelancehub core tests.
"""

import pytest

from freelancehub import Actor, Marketplace, MarketplaceConfig, Role
from freelancehub.commerce.milestones.service import MilestoneInput


@pytest.fixture
def config():
    """Default marketplace policy."""
    return MarketplaceConfig()


@pytest.fixture
def market(config):
    """Marketplace over fresh in-memory storage."""
    return Marketplace.in_memory(config)


@pytest.fixture
def employer():
    return Actor("emp-1", Role.EMPLOYER)


@pytest.fixture
def other_employer():
    return Actor("emp-2", Role.EMPLOYER)


@pytest.fixture
def freelancer():
    return Actor("fl-1", Role.FREELANCER)


@pytest.fixture
def freelancer2():
    return Actor("fl-2", Role.FREELANCER)


@pytest.fixture
def admin():
    return Actor("admin-1", Role.ADMIN)


@pytest.fixture
def make_job(market, employer):
    """Factory creating open jobs with sensible defaults."""

    def _make(title="Logo design", budget=100, actor=None, **kwargs):
        return market.jobs.create_job(
            actor or employer,
            title=title,
            description=kwargs.pop("description", "Design a logo for a bakery"),
            budget=budget,
            **kwargs,
        )

    return _make


@pytest.fixture
def open_job(make_job):
    return make_job()


@pytest.fixture
def assigned_job(market, open_job, employer, freelancer):
    """Open job with one applicant who has been selected."""
    market.jobs.apply_to_job(open_job.id, freelancer)
    return market.jobs.select_freelancer(open_job.id, freelancer.user_id, employer)


@pytest.fixture
def completed_job(market, assigned_job, employer, freelancer):
    """Assigned job completed through a single 100% milestone."""
    [milestone] = market.milestones.create_milestones(
        assigned_job.id, [MilestoneInput(title="Everything", percentage=100)], employer
    )
    market.milestones.request_approval(assigned_job.id, milestone.id, freelancer)
    result = market.milestones.approve_milestone(assigned_job.id, milestone.id, employer)
    assert result.job_completed
    return result.job
