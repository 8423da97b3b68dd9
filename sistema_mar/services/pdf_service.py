import logging
from fpdf import FPDF

from sistema_mar.utils import format_date_br, get_now_br

logger = logging.getLogger(__name__)

REPORT_TITLE = 'Relatório de Respostas MAR - Crie Valor Consultoria'

LATIN1_REPLACEMENTS = {
    '\u2013': '-', '\u2014': '-',
    '\u2018': "'", '\u2019': "'",
    '\u201c': '"', '\u201d': '"',
    '\u2022': '-', '\u2026': '...',
    '\u00a0': ' ', '\u200b': '',
}


def sanitize(text):
    """Core fonts only cover latin-1."""
    text = '' if text is None else str(text)
    for src, dst in LATIN1_REPLACEMENTS.items():
        text = text.replace(src, dst)
    return text.encode('latin-1', 'replace').decode('latin-1')


class QuizReportPDF(FPDF):
    def __init__(self, user_name='', generated_at=None):
        super().__init__()
        self.user_name = user_name
        self.generated_at = generated_at or get_now_br()
        self.set_auto_page_break(auto=True, margin=20)

    def header(self):
        self.set_font('Helvetica', 'B', 14)
        self.set_text_color(0)
        self.cell(0, 10, sanitize(REPORT_TITLE), 0, 1, 'L')
        if self.user_name:
            self.set_xy(10, 15)
            self.set_font('Helvetica', 'I', 8)
            self.set_text_color(128)
            self.cell(0, 5, sanitize(self.user_name), 0, 1, 'R')

        self.set_draw_color(200, 200, 200)
        self.set_line_width(0.5)
        self.line(10, 22, 200, 22)
        self.ln(6)

    def footer(self):
        # 1.5 cm from bottom
        self.set_y(-15)
        self.set_font('Helvetica', 'I', 8)
        self.set_text_color(128)
        generated = self.generated_at.strftime('%d/%m/%Y %H:%M')
        self.cell(0, 10, f"Gerado em {generated} | Página {self.page_no()} de {{nb}}", 0, 0, 'C')


class PdfService:
    @staticmethod
    def generate_report(report):
        """Renders ExportService.submission_report() output. Returns PDF bytes."""
        submission = report['submission']
        logger.info(f"Generating PDF report for submission {submission['id']}")

        pdf = QuizReportPDF(user_name=report.get('user_name'))
        pdf.alias_nb_pages()
        pdf.add_page()

        pdf.set_font('Helvetica', '', 10)
        pdf.set_text_color(60)
        for label, value in (
            ('Usuário', report.get('user_name') or '-'),
            ('Email', report.get('user_email') or '-'),
            ('Data de início', format_date_br(submission.get('started_at')) or '-'),
            ('Data de conclusão', format_date_br(submission.get('completed_at')) or 'Não concluído'),
        ):
            pdf.cell(0, 6, sanitize(f"{label}: {value}"), 0, 1, 'L')
        pdf.ln(4)

        for module in report['modules']:
            pdf.set_font('Helvetica', 'B', 12)
            pdf.set_text_color(0)
            pdf.set_fill_color(240, 240, 240)
            pdf.cell(0, 8, sanitize(f"Módulo {module['order_number']}: {module['module']}"), 0, 1, 'L', fill=True)
            pdf.ln(1)

            for item in module['answers']:
                pdf.set_font('Helvetica', 'B', 10)
                pdf.set_text_color(0)
                pdf.multi_cell(0, 5, sanitize(f"Pergunta: {item['question']}"))
                pdf.set_font('Helvetica', '', 10)
                pdf.set_text_color(60)
                pdf.multi_cell(0, 5, sanitize(f"Resposta: {item['answer'] or 'Sem resposta'}"))
                pdf.ln(2)
            pdf.ln(2)

        return bytes(pdf.output())
