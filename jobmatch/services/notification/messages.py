"""
Builders for push payloads and email template data, plus a small email
renderer used by the SMTP transport.
"""

from html import escape
from typing import Any, Dict, List, Optional, Sequence, Tuple

from jobmatch.config import settings
from jobmatch.schemas.matching import MatchResult
from jobmatch.schemas.notification import (
    EmailMessage,
    EmailTemplate,
    PushMessage,
    PushType,
    Recipient,
    RecommendedPosting,
)
from jobmatch.schemas.posting import Posting, UrgentPosting
from jobmatch.services.geo.location import format_distance


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _greeting(recipient: Recipient) -> str:
    return recipient.first_name or "there"


def recommended_posting(
    posting: Posting, result: MatchResult, distance_km: Optional[float] = None
) -> RecommendedPosting:
    return RecommendedPosting(
        id=posting.id,
        title=posting.title,
        company_name=posting.company_name,
        location=posting.address,
        match_score=result.match_score,
        job_type=posting.job_type,
        salary_min=posting.salary_min,
        salary_max=posting.salary_max,
        distance_km=distance_km,
    )


def _summaries(recommendations: Sequence[RecommendedPosting]) -> List[Dict[str, Any]]:
    return [
        {"jobId": r.id, "title": r.title, "matchScore": r.match_score}
        for r in recommendations
    ]


# ============================================================================
# Push payloads
# ============================================================================


def new_posting_push(posting: Posting, result: MatchResult) -> PushMessage:
    company = posting.company_name or "Company"
    return PushMessage(
        type=PushType.JOB_RECOMMENDATION,
        title="New Job Matches Your Profile!",
        message=(
            f"{posting.title} at {company} matches your skills and location "
            f"({round(result.match_score)}% match)"
        ),
        data={
            "jobId": posting.id,
            "jobTitle": posting.title,
            "companyName": posting.company_name,
            "matchScore": result.match_score,
            "location": posting.address,
            "matchedSkills": list(result.breakdown.matched_skills),
        },
    )


def digest_push(recommendations: Sequence[RecommendedPosting]) -> PushMessage:
    top = recommendations[0]
    return PushMessage(
        type=PushType.JOB_RECOMMENDATION,
        title="New Job Matches Your Profile!",
        message=(
            f"We found {_plural(len(recommendations), 'job')} matching your skills "
            f"and location. Top match: {top.title} ({round(top.match_score)}% match)"
        ),
        data={
            "jobCount": len(recommendations),
            "topMatch": top.model_dump(by_alias=True),
            "allRecommendations": _summaries(recommendations),
        },
    )


def similar_postings_push(
    applied: Posting, recommendations: Sequence[RecommendedPosting]
) -> PushMessage:
    return PushMessage(
        type=PushType.JOB_RECOMMENDATION,
        title="Similar Jobs You Might Like",
        message=(
            f'Since you applied for "{applied.title}", here are '
            f"{_plural(len(recommendations), 'similar job')} you might be interested in"
        ),
        data={
            "jobCount": len(recommendations),
            "appliedJob": {"jobId": applied.id, "title": applied.title},
            "allRecommendations": _summaries(recommendations),
        },
    )


def skill_gap_push(
    rejected: Posting,
    missing_skills: Sequence[str],
    matched_skills: Sequence[str],
    similar_count: int,
) -> PushMessage:
    return PushMessage(
        type=PushType.SKILL_RECOMMENDATION,
        title="Skills to Improve Your Profile",
        message=(
            f'Based on your application for "{rejected.title}", here are skills '
            f"to learn: {', '.join(list(missing_skills)[:3])}"
        ),
        data={
            "jobTitle": rejected.title,
            "companyName": rejected.company_name,
            "missingSkills": list(missing_skills),
            "matchedSkills": list(matched_skills),
            "similarJobsCount": similar_count,
        },
    )


def nearby_push(
    recommendations: Sequence[RecommendedPosting], radius_km: float
) -> PushMessage:
    closest = recommendations[0]
    distance = format_distance(closest.distance_km) if closest.distance_km is not None else "nearby"
    return PushMessage(
        type=PushType.NEARBY_JOB_RECOMMENDATION,
        title="Jobs Near You",
        message=(
            f"{_plural(len(recommendations), 'job')} within {radius_km:g}km match "
            f"your skills. Closest: {closest.title} ({distance})"
        ),
        data={
            "jobCount": len(recommendations),
            "radiusKm": radius_km,
            "closestJob": closest.model_dump(by_alias=True),
            "allRecommendations": _summaries(recommendations),
        },
    )


def urgent_push(urgent: UrgentPosting, distance_km: float) -> PushMessage:
    return PushMessage(
        type=PushType.URGENT_JOB_NEARBY,
        title="Urgent Job Near You!",
        message=(
            f"{urgent.title} is only {distance_km:.1f}km away. "
            f"Payment: Rs. {urgent.payment_amount:,.0f} ({urgent.payment_type})"
        ),
        data={
            "jobId": urgent.id,
            "jobTitle": urgent.title,
            "category": urgent.category,
            "paymentAmount": urgent.payment_amount,
            "paymentType": urgent.payment_type,
            "urgencyLevel": urgent.urgency_level,
            "location": urgent.address,
            "distance": distance_km,
            "startTime": urgent.start_time.isoformat() if urgent.start_time else None,
            "contactPhone": urgent.contact_phone,
        },
    )


# ============================================================================
# Email template data
# ============================================================================


def recommendation_email(
    recipient: Recipient, recommendations: Sequence[RecommendedPosting]
) -> EmailMessage:
    return EmailMessage(
        template=EmailTemplate.JOB_RECOMMENDATION,
        subject=f"{_plural(len(recommendations), 'new job')} matching your profile",
        context={
            "firstName": _greeting(recipient),
            "jobs": [r.model_dump(by_alias=True) for r in recommendations],
        },
    )


def skill_gap_email(
    recipient: Recipient,
    rejected: Posting,
    missing_skills: Sequence[str],
    matched_skills: Sequence[str],
    similar: Sequence[RecommendedPosting],
) -> EmailMessage:
    return EmailMessage(
        template=EmailTemplate.SKILL_RECOMMENDATION,
        subject=f"Skills that would strengthen your application for {rejected.title}",
        context={
            "firstName": _greeting(recipient),
            "jobTitle": rejected.title,
            "companyName": rejected.company_name,
            "missingSkills": list(missing_skills),
            "matchedSkills": list(matched_skills),
            "jobs": [r.model_dump(by_alias=True) for r in similar],
        },
    )


def nearby_email(
    recipient: Recipient,
    recommendations: Sequence[RecommendedPosting],
    radius_km: float,
) -> EmailMessage:
    return EmailMessage(
        template=EmailTemplate.NEARBY_JOB_RECOMMENDATION,
        subject=f"{_plural(len(recommendations), 'job')} within {radius_km:g}km of you",
        context={
            "firstName": _greeting(recipient),
            "radiusKm": radius_km,
            "jobs": [r.model_dump(by_alias=True) for r in recommendations],
        },
    )


def urgent_email(
    recipient: Recipient, urgent: UrgentPosting, distance_km: float
) -> EmailMessage:
    return EmailMessage(
        template=EmailTemplate.URGENT_JOB,
        subject=f"Urgent: {urgent.title} ({format_distance(distance_km)} away)",
        context={
            "firstName": _greeting(recipient),
            "jobId": urgent.id,
            "title": urgent.title,
            "description": urgent.description,
            "category": urgent.category,
            "paymentAmount": urgent.payment_amount,
            "paymentType": urgent.payment_type,
            "urgencyLevel": urgent.urgency_level,
            "location": urgent.address,
            "distance": distance_km,
            "startTime": urgent.start_time.isoformat() if urgent.start_time else None,
            "contactPhone": urgent.contact_phone,
            "posterName": urgent.poster_name,
        },
    )


# ============================================================================
# Rendering
# ============================================================================


def _job_lines(jobs: Sequence[Dict[str, Any]]) -> List[str]:
    lines = []
    for job in jobs:
        line = f"- {job['title']}"
        if job.get("companyName"):
            line += f" at {job['companyName']}"
        if job.get("location"):
            line += f", {job['location']}"
        line += f" ({round(job['matchScore'])}% match)"
        if job.get("distanceKm") is not None:
            line += f", {format_distance(job['distanceKm'])} away"
        line += f"\n  {settings.FRONTEND_URL}/jobs/{job['id']}"
        lines.append(line)
    return lines


def render_email(message: EmailMessage) -> Tuple[str, str]:
    """
    Render template data into (plain text, html) bodies.
    """
    ctx = message.context
    lines = [f"Hi {ctx.get('firstName', 'there')},", ""]

    if message.template == EmailTemplate.URGENT_JOB:
        lines.append(
            f"An urgent {ctx.get('category') or 'job'} posting is "
            f"{format_distance(ctx['distance'])} from you: {ctx['title']}."
        )
        lines.append(
            f"Payment: Rs. {ctx['paymentAmount']:,.0f} ({ctx['paymentType']})"
        )
        if ctx.get("location"):
            lines.append(f"Location: {ctx['location']}")
        if ctx.get("startTime"):
            lines.append(f"Starts: {ctx['startTime']}")
        if ctx.get("contactPhone"):
            lines.append(f"Contact: {ctx['contactPhone']}")
        if ctx.get("description"):
            lines.extend(["", ctx["description"]])
        lines.extend(["", f"{settings.FRONTEND_URL}/dashboard/urgent-jobs/{ctx['jobId']}"])
    elif message.template == EmailTemplate.SKILL_RECOMMENDATION:
        lines.append(
            f"Thanks for applying to {ctx['jobTitle']}. These skills would "
            f"strengthen future applications: {', '.join(ctx['missingSkills'])}."
        )
        if ctx.get("matchedSkills"):
            lines.append(f"You already bring: {', '.join(ctx['matchedSkills'])}.")
        if ctx.get("jobs"):
            lines.extend(["", "Jobs you qualify for right now:"])
            lines.extend(_job_lines(ctx["jobs"]))
    else:
        if message.template == EmailTemplate.NEARBY_JOB_RECOMMENDATION:
            lines.append(f"These jobs within {ctx['radiusKm']:g}km match your skills:")
        else:
            lines.append("These jobs match your skills and location:")
        lines.extend(_job_lines(ctx.get("jobs", [])))

    text = "\n".join(lines)
    html = (
        '<div style="font-family:Arial,sans-serif;font-size:14px;color:#1a1a1a">'
        + "".join(
            f"<p style=\"margin:4px 0\">{escape(line)}</p>" if line else "<br>"
            for line in lines
        )
        + "</div>"
    )
    return text, html
