"""
Email Service
Renders and delivers the four notification kinds.  Delivery is
fire-and-forget: failures are logged here and reported as ``False`` so the
state change that triggered the email is never rolled back.

Backends (``MAIL_BACKEND``):
  smtp    deliver through MAIL_SERVER with STARTTLS when MAIL_USE_TLS
  log     write the message summary to the application log
  memory  append to ``app.extensions['mail_outbox']`` (tests)
"""
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from flask import current_app, render_template
from jinja2 import TemplateError


KIND_WELCOME = 'Welcome'
KIND_PASSWORD_RESET = 'PasswordReset'
KIND_INVITE = 'Invite'
KIND_REVOKE = 'Revoke'

# kind -> (subject, template)
EMAIL_KINDS = {
    KIND_WELCOME: ('Welcome to HomeLedger!', 'email/welcome.html'),
    KIND_PASSWORD_RESET: ('Your Password Reset Request', 'email/password_reset.html'),
    KIND_INVITE: ("You've Been Invited to View a Record on HomeLedger", 'email/invite.html'),
    KIND_REVOKE: ('Your Access to a HomeLedger Record Was Revoked', 'email/revoke.html'),
}


class EmailService:

    @staticmethod
    def send(kind, recipient, params=None):
        """Render and deliver an email of *kind* to *recipient*.

        Returns True on success, False if rendering or delivery failed.
        """
        if kind not in EMAIL_KINDS:
            raise ValueError(f'Unknown email kind: {kind}')
        subject, template = EMAIL_KINDS[kind]
        params = dict(params or {})
        params.setdefault('name', 'User')

        try:
            html = render_template(template, **params)
        except TemplateError:
            current_app.logger.exception(f'Failed to render {kind} email for {recipient}')
            return False

        message = EmailMessage()
        message['Subject'] = subject
        message['From'] = formataddr((current_app.config['MAIL_SENDER_NAME'],
                                      current_app.config['MAIL_SENDER_EMAIL']))
        message['To'] = recipient
        message.set_content(f'{subject}\n\nPlease view this message in an HTML-capable client.')
        message.add_alternative(html, subtype='html')

        try:
            EmailService._deliver(message)
        except (smtplib.SMTPException, OSError) as exc:
            current_app.logger.error(f'Failed to send {kind} email to {recipient}: {exc}')
            return False

        current_app.logger.info(f'Sent {kind} email to {recipient}')
        return True

    @staticmethod
    def _deliver(message):
        backend = current_app.config.get('MAIL_BACKEND', 'log')
        if backend == 'memory':
            current_app.extensions.setdefault('mail_outbox', []).append(message)
        elif backend == 'smtp':
            cfg = current_app.config
            with smtplib.SMTP(cfg['MAIL_SERVER'], cfg['MAIL_PORT'], timeout=cfg['MAIL_TIMEOUT']) as smtp:
                if cfg['MAIL_USE_TLS']:
                    smtp.starttls()
                if cfg.get('MAIL_USERNAME'):
                    smtp.login(cfg['MAIL_USERNAME'], cfg['MAIL_PASSWORD'])
                smtp.send_message(message)
        else:
            current_app.logger.info(f"[mail:{backend}] to={message['To']} subject={message['Subject']}")
