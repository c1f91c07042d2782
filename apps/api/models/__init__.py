"""Models package."""

from .tenant import Tenant, TenantDomain
from .profile import Profile
from .organization import Organization, OrganizationMember
from .credit_ledger import CreditLedger
from .pricing import CreditPriceTier, SubscriptionSettings
from .order import Order, Payment
from .question import AssignmentRequest, Question, QuestionRevision
from .worker_cv import CvBlockType, WorkerCvBlock, WorkerCvProfile
from .rag import RagChunk, RagDocument
from .sla_rule import SlaReminderRule
from .content import BlogPost, NewsItem
from .contact import ContactTicket
from .audit_log import AuditLog, NotificationLog
from .gpt_profile import GptAnswerProfile
