from .invoice import (BatchResult, batch_post_invoices, batch_verify_invoices,
                      create_invoice, delete_draft_invoice, post_invoice,
                      record_payment, update_invoice, verify_invoice,
                      void_invoice, void_payment)
from .journal import (TrialBalanceRow, add_journal_line, create_draft_journal,
                      delete_draft_journal, get_trial_balance, post_journal,
                      remove_journal_line, reverse_journal,
                      update_journal_line, void_journal)
from .media_file import (MediaFileOptions, MediaFileResult, MediaInvoice,
                         generate_media_file, media_filename,
                         media_invoices_from_summary, validate_media_file)
from .registry import AccountRegistry, seed_chart_of_accounts
from .reports import (TaxPeriodSummary, calculate_tax_period,
                      classify_output_invoice, get_balance_sheet,
                      get_income_statement, get_invoice_detail_list,
                      get_tax_summary)
from .statutory import (FilingCompany, Form401Data, Form403Data,
                        generate_form401, generate_form401_xml,
                        generate_form403, generate_form403_xml)
