"""Static question bank for the Growth Scorecard."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

MAX_POINTS_PER_QUESTION = 25


@dataclass(frozen=True)
class QuestionOption:
    label: str
    points: float


@dataclass(frozen=True)
class QuestionDefinition:
    id: str
    text: str
    options: Tuple[QuestionOption, ...]
    dimension: str
    multi_select: bool = False

    @property
    def max_points(self) -> float:
        if self.multi_select:
            return sum(option.points for option in self.options)
        return max((option.points for option in self.options), default=0)

    @property
    def allowed_points(self) -> Tuple[float, ...]:
        return tuple(option.points for option in self.options)


@dataclass(frozen=True)
class DimensionDefinition:
    name: str
    weight: float
    questions: Tuple[QuestionDefinition, ...] = field(default_factory=tuple)
    color: str = "bg-gray-500"


def _single(dimension: str, qid: str, text: str, labels: List[str]) -> QuestionDefinition:
    points = (25, 18, 10, 0)
    options = tuple(QuestionOption(label, pts) for label, pts in zip(labels, points))
    return QuestionDefinition(id=qid, text=text, options=options, dimension=dimension)


def _dimension(name: str, weight: float, color: str, questions: List[Tuple[str, str, List[str]]]) -> DimensionDefinition:
    return DimensionDefinition(
        name=name,
        weight=weight,
        color=color,
        questions=tuple(_single(name, qid, text, labels) for qid, text, labels in questions),
    )


DIMENSIONS: Tuple[DimensionDefinition, ...] = (
    _dimension(
        "Digital Foundation",
        0.15,
        "bg-blue-500",
        [
            (
                "q1",
                "What is your website's average load time on mobile devices?",
                ["Under 2 seconds", "2-3 seconds", "3-5 seconds", "Over 5 seconds or don't know"],
            ),
            (
                "q2",
                "How would you rate your mobile user experience?",
                [
                    "Fully responsive with mobile-specific features",
                    "Responsive design, works well on mobile",
                    "Somewhat responsive but has usability issues",
                    "Not optimized for mobile",
                ],
            ),
            (
                "q3",
                "What analytics tools do you currently use?",
                [
                    "Google Analytics 4 + conversion tracking + CRM integration",
                    "Google Analytics with goals/events set up",
                    "Basic Google Analytics installed",
                    "No analytics or rarely check them",
                ],
            ),
            (
                "q4",
                "How well is your website optimized for search engines?",
                [
                    "Comprehensive SEO (sitemap, schema, optimized meta tags)",
                    "Basic SEO (meta descriptions, alt tags, decent structure)",
                    "Minimal SEO (some keywords in content)",
                    "No SEO optimization",
                ],
            ),
        ],
    ),
    _dimension(
        "Brand Positioning",
        0.10,
        "bg-purple-500",
        [
            (
                "q5",
                "Can someone understand what you do within 5 seconds of visiting your website?",
                [
                    "Yes, crystal clear with unique differentiation",
                    "Yes, but could be clearer or more differentiated",
                    "Somewhat clear but generic",
                    "Confusing or unclear",
                ],
            ),
            (
                "q6",
                "What makes you different from competitors?",
                [
                    "Clear, defendable unique value proposition",
                    "Some differentiation but not strongly communicated",
                    "Similar to competitors with minor differences",
                    "No clear differentiation",
                ],
            ),
            (
                "q7",
                "Which trust-building elements are present on your website?",
                [
                    "4+ elements (logos, testimonials, case studies, certifications)",
                    "2-3 trust elements",
                    "1 trust element",
                    "No trust signals",
                ],
            ),
        ],
    ),
    _dimension(
        "Content Strategy",
        0.15,
        "bg-green-500",
        [
            (
                "q8",
                "How often do you publish valuable content?",
                [
                    "Weekly or more, with strategic content plan",
                    "2-3 times per month",
                    "Monthly or irregularly",
                    "Rarely or never",
                ],
            ),
            (
                "q9",
                "What type of content do you primarily create?",
                [
                    "In-depth thought leadership (2,000+ word guides)",
                    "Mix of educational and promotional (800-1,500 words)",
                    "Short promotional posts (under 500 words)",
                    "Minimal content creation",
                ],
            ),
            (
                "q10",
                "Are your content pieces optimized for search engines?",
                [
                    "Yes, keyword research + on-page SEO + internal linking",
                    "Some keyword optimization",
                    "Write naturally without SEO focus",
                    "No SEO consideration",
                ],
            ),
            (
                "q11",
                "How do you distribute your content?",
                [
                    "Multi-channel strategy (email, social, partnerships, paid, SEO)",
                    "2-3 channels consistently",
                    "1 channel (usually social media)",
                    "Publish and hope people find it",
                ],
            ),
        ],
    ),
    _dimension(
        "Lead Generation",
        0.20,
        "bg-orange-500",
        [
            (
                "q12",
                "What do you offer to capture leads?",
                [
                    "Multiple lead magnets tailored to buyer stages",
                    "1-2 lead magnets",
                    "Just newsletter signup",
                    "No lead capture mechanism",
                ],
            ),
            (
                "q13",
                "What percentage of website visitors become leads?",
                ["3% or higher", "1.5-3%", "0.5-1.5%", "Under 0.5% or don't know"],
            ),
            (
                "q14",
                "How optimized are your landing pages?",
                [
                    "A/B tested with clear CTAs, social proof, minimal friction",
                    "Decent pages with clear CTAs",
                    "Generic contact page or basic forms",
                    "No dedicated landing pages",
                ],
            ),
            (
                "q15",
                "How do you qualify leads?",
                [
                    "Scoring system based on fit + engagement, automated routing",
                    "Manual qualification based on criteria",
                    "Basic filtering (company size, industry)",
                    "All leads treated equally",
                ],
            ),
        ],
    ),
    _dimension(
        "Paid Acquisition",
        0.15,
        "bg-red-500",
        [
            (
                "q16",
                "Which paid channels are you actively using?",
                [
                    "3+ channels tested and optimized",
                    "2 channels actively running",
                    "1 channel (usually Facebook or Google)",
                    "No paid advertising",
                ],
            ),
            (
                "q17",
                "Do you track CAC and is it profitable?",
                [
                    "Yes, track by channel. CAC < 1/3 of LTV",
                    "Track CAC, working to improve ratio",
                    "Roughly track spending but not precise CAC",
                    "Don't track CAC",
                ],
            ),
            (
                "q18",
                "What's your average ROAS across paid channels?",
                ["4:1 or higher", "2:1 to 4:1", "1:1 to 2:1", "Below 1:1 or don't measure"],
            ),
        ],
    ),
    _dimension(
        "Sales Enablement",
        0.10,
        "bg-indigo-500",
        [
            (
                "q19",
                "How do you manage your sales pipeline?",
                [
                    "Full CRM with automation + sales workflows",
                    "CRM in use but underutilized",
                    "Spreadsheets or basic tools",
                    "Email inbox or memory",
                ],
            ),
            (
                "q20",
                "How well do marketing and sales teams collaborate?",
                [
                    "Weekly syncs, shared goals, closed-loop reporting",
                    "Regular communication and shared lead definitions",
                    "Occasional communication when needed",
                    "Siloed teams with minimal collaboration",
                ],
            ),
            (
                "q21",
                "How do you nurture leads who aren't ready to buy?",
                [
                    "Automated nurture sequences based on behavior",
                    "Email sequences for new leads",
                    "Occasional email blasts",
                    "No systematic nurturing",
                ],
            ),
        ],
    ),
    _dimension(
        "Customer Retention",
        0.10,
        "bg-pink-500",
        [
            (
                "q22",
                "How effective is your email marketing?",
                [
                    "Segmented campaigns with 25%+ open rates, 3%+ click rates",
                    "Regular emails with average engagement (15-20% open)",
                    "Occasional emails with low engagement",
                    "Rarely send emails or no list",
                ],
            ),
            (
                "q23",
                "Do you have campaigns for different customer stages?",
                [
                    "Full lifecycle: onboarding → engagement → upsell → win-back",
                    "Some automated sequences (onboarding + occasional)",
                    "Manual outreach to existing customers",
                    "Focus only on new customer acquisition",
                ],
            ),
            (
                "q24",
                "How do you generate referrals?",
                [
                    "Formal referral program with incentives",
                    "Ask happy customers for referrals informally",
                    "Hope for word-of-mouth",
                    "No referral strategy",
                ],
            ),
        ],
    ),
    DimensionDefinition(
        name="African Market Fit",
        weight=0.05,
        color="bg-yellow-500",
        questions=(
            QuestionDefinition(
                id="q25",
                text="How well are you optimized for African buyers? (Select all that apply)",
                dimension="African Market Fit",
                multi_select=True,
                options=(
                    QuestionOption("Local payments (Paystack, Flutterwave, mobile money)", 6.25),
                    QuestionOption("WhatsApp Business integration for support", 6.25),
                    QuestionOption("Prices in local currency (Naira, Rand, Shilling)", 6.25),
                    QuestionOption("Content addressing local challenges/regulations", 6.25),
                ),
            ),
        ),
    ),
)


def all_questions(dimensions: Tuple[DimensionDefinition, ...] = DIMENSIONS) -> List[QuestionDefinition]:
    """Flatten the taxonomy into wizard order."""
    return [question for dimension in dimensions for question in dimension.questions]


_QUESTION_INDEX: Dict[str, QuestionDefinition] = {q.id: q for q in all_questions()}


def get_question(question_id: str) -> QuestionDefinition | None:
    return _QUESTION_INDEX.get(question_id)


def validate_taxonomy(dimensions: Tuple[DimensionDefinition, ...] = DIMENSIONS) -> None:
    """Raise ``ValueError`` when the taxonomy breaks a structural invariant."""
    total_weight = sum(dimension.weight for dimension in dimensions)
    if abs(total_weight - 1.0) > 1e-9:
        raise ValueError(f"Dimension weights sum to {total_weight}, expected 1.0")

    names = [dimension.name for dimension in dimensions]
    if len(names) != len(set(names)):
        raise ValueError("Dimension names must be unique")

    ids = [question.id for question in all_questions(dimensions)]
    if len(ids) != len(set(ids)):
        raise ValueError("Question ids must be unique")

    for question in all_questions(dimensions):
        if abs(question.max_points - MAX_POINTS_PER_QUESTION) > 1e-9:
            raise ValueError(
                f"Question {question.id} tops out at {question.max_points} points, "
                f"expected {MAX_POINTS_PER_QUESTION}"
            )


def taxonomy_payload(dimensions: Tuple[DimensionDefinition, ...] = DIMENSIONS) -> List[Dict[str, object]]:
    return [
        {
            "name": dimension.name,
            "weight": dimension.weight,
            "color": dimension.color,
            "questions": [
                {
                    "id": question.id,
                    "text": question.text,
                    "multiSelect": question.multi_select,
                    "options": [{"text": option.label, "points": option.points} for option in question.options],
                }
                for question in dimension.questions
            ],
        }
        for dimension in dimensions
    ]
